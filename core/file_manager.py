from fastapi import UploadFile

from core.errors import FileTooLargeError

async def read_upload_securely(file: UploadFile, max_size_mb: int, chunk_size: int = 1024 * 1024) -> bytes:
    """
    Reads the upload in chunks so an oversized file is rejected as soon as
    it crosses the limit instead of after it is fully buffered.
    """
    max_size = max_size_mb * 1024 * 1024
    size = 0
    chunks = []

    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break

        size += len(chunk)
        if size > max_size:
            raise FileTooLargeError(f"File too large. Max size is {max_size_mb}MB")

        chunks.append(chunk)

    return b"".join(chunks)
