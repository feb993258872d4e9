import pytest
from fastapi.testclient import TestClient

from chatrelay.main import create_app
from tests.helpers import UpstreamDouble, make_settings


@pytest.fixture
def upstream():
    return UpstreamDouble()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(upstream, settings):
    app = create_app(settings, http_client=upstream.client())
    return TestClient(app)


@pytest.fixture
def lenient_client(upstream, settings):
    app = create_app(settings, http_client=upstream.client())
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def chat_body():
    return {"messages": [{"role": "user", "content": "Hi"}]}
