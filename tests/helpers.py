import uuid
from types import SimpleNamespace

from core.errors import CapabilityError
from schemas.conversation import ConversationContext, DatasetMetadata
from schemas.insights import AISummary


SALES_CSV = (
    b"region,product,units,price\n"
    b"north,apple,10,1.5\n"
    b"south,banana,20,0.5\n"
    b"north,cherry,5,3.0\n"
    b"east,apple,,2.0\n"
    b"south,apple,15,1.0\n"
)


def make_csv(header, rows) -> bytes:
    lines = [",".join(header)] + [",".join(str(v) for v in row) for row in rows]
    return ("\n".join(lines) + "\n").encode("utf-8")


async def put_dataset(storage, content: bytes, job_id: str = None) -> str:
    """Store content where the query engine looks for a job's file"""
    job_id = job_id or str(uuid.uuid4())
    await storage.put(f"uploads/{job_id}.csv", content)
    return job_id


def make_context(job_id: str, columns, data_types=None, row_count=0) -> ConversationContext:
    return ConversationContext(
        job_id=job_id,
        dataset_metadata=DatasetMetadata(
            columns=list(columns),
            row_count=row_count,
            data_types=data_types or {c: "string" for c in columns},
        ),
    )


class FakeCapability:
    """Scripted NL capability"""

    def __init__(self, translation=None, summary=None):
        self.translation = translation
        self.summary = summary
        self.translate_requests = []
        self.summarize_requests = []

    async def translate_query(self, request):
        self.translate_requests.append(request)
        if isinstance(self.translation, Exception):
            raise self.translation
        if self.translation is None:
            raise CapabilityError("no translation scripted")
        return self.translation

    async def summarize(self, request):
        self.summarize_requests.append(request)
        if isinstance(self.summary, Exception):
            raise self.summary
        if self.summary is None:
            raise CapabilityError("no summary scripted")
        if isinstance(self.summary, str):
            return AISummary(summary=self.summary)
        return self.summary


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


class FakeGroqClient:
    def __init__(self, *replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)
