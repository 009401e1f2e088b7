"""Pytest fixtures for dashboard API tests."""

import time

import pytest
from fastapi.testclient import TestClient

from dashboard_api.config import Settings
from dashboard_api.main import create_app
from stream_engine.service import StreamService
from stream_engine.supervisor import StreamSupervisor


@pytest.fixture
def settings() -> Settings:
    return Settings(app_name="Test Dashboard", cors_origins=["http://testserver"])


@pytest.fixture
def stream_service(engine_config, worker_factory) -> StreamService:
    """Stream service backed by fake workers."""
    supervisor = StreamSupervisor(config=engine_config, worker_factory=worker_factory)
    return StreamService(supervisor=supervisor)


@pytest.fixture
def client(stream_service, settings):
    """Test client with the application lifespan running."""
    app = create_app(service=stream_service, settings=settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def wait_for_status(client):
    """Poll a stream until it reaches a status."""

    def _wait(stream_id: str, expected: str, timeout: float = 2.0) -> dict:
        deadline = time.monotonic() + timeout
        while True:
            details = client.get(f"/api/v1/streams/{stream_id}").json()
            if details.get("status") == expected or time.monotonic() > deadline:
                return details
            time.sleep(0.01)

    return _wait
