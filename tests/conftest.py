import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from config.settings import AISettings, AppSettings, QueueSettings, StorageSettings
from core.container import build_services
from core.object_storage import InMemoryObjectStorage
from main import create_app


# Memory-only storage, small queue, no AI key
@pytest.fixture
def settings():
    return AppSettings(
        environment="testing",
        storage=StorageSettings(storage_dir=""),
        queue=QueueSettings(max_size=4),
        ai=AISettings(groq_api_key=""),
    )


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest.fixture
def services(settings, storage):
    return build_services(settings, storage=storage)


# Client (lifespan is not run, so the worker stays idle and jobs wait in the queue)
@pytest_asyncio.fixture(scope="function")
async def client(settings, services):
    app = create_app(settings, services)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
