import pytest
from fastapi.testclient import TestClient

from concierge.core.config import Settings
from concierge.main import create_app


@pytest.fixture
def client(protocol):
    app = create_app(settings=Settings(_env_file=None), protocol=protocol)
    with TestClient(app) as test_client:
        yield test_client
