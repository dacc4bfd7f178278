from typing import List, Optional

from core.errors import ValidationError

def validate_csv_upload(filename: Optional[str], content: bytes, allowed_extensions: List[str]):
    """
    Reject empty uploads and files without an allowed extension.
    Content is only parsed later, by the background worker.
    """
    if not content:
        raise ValidationError("No file uploaded")

    name = (filename or "").lower()
    if not any(name.endswith(ext.lower()) for ext in allowed_extensions):
        raise ValidationError("File must be a CSV")
