import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from spark_console.config import METRIC_FAMILIES
from spark_console.services.containers import ContainerControl, ContainerReader, MockContainerRuntime
from spark_console.services.model_discovery import ModelDiscovery
from spark_console.services.provider import MetricsProvider
from tests.mocks.readers import mock_readers


@pytest.fixture
def mock_provider():
    """Provider wired to the deterministic mock readers."""
    return MetricsProvider(mock_readers(), modes={f: "mock" for f in METRIC_FAMILIES}, timeout=2.0)


@pytest.fixture
def container_runtime():
    return MockContainerRuntime()


@pytest.fixture
def models_dir(tmp_path):
    root = tmp_path / "models"
    root.mkdir()
    return root


@pytest_asyncio.fixture
async def test_app(mock_provider, container_runtime, models_dir):
    """FastAPI app wired to mock collection backends (lifespan does not run under ASGITransport)."""
    from spark_console.main import app

    app.state.provider = mock_provider
    app.state.container_reader = ContainerReader(container_runtime)
    app.state.container_control = ContainerControl(container_runtime)
    app.state.model_discovery = ModelDiscovery([models_dir])
    yield app


@pytest_asyncio.fixture
async def client(test_app):
    """Async HTTP client in LAN-only mode (no token configured)."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_token(monkeypatch):
    """Enable shared-token access control for the duration of a test."""
    from spark_console.config import settings

    monkeypatch.setattr(settings, "spark_auth_token", "test-token-123")
    return "test-token-123"
