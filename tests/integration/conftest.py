"""
Integration test fixtures. Builds the API around the in-memory SQLite store from the root conftest.
"""
import pytest


@pytest.fixture
def api_settings(tmp_path):
    from api.config import Settings
    return Settings(database_url=f"sqlite:///{tmp_path / 'api.db'}", request_timeout_seconds=10.0, atomic_completion=True)


@pytest.fixture
def api_client(api_settings, sql_store):
    """FastAPI TestClient over the in-memory SQL store."""
    from fastapi.testclient import TestClient
    from api.api import create_app
    app = create_app(settings=api_settings, store=sql_store)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def created_path(api_client):
    """POST a three-node path and return the response body."""
    response = api_client.post(
        "/api/paths",
        json={
            "user_id": "anonymous",
            "topic": "Learn Go basics",
            "title": "Go Programming Fundamentals",
            "nodes": [
                {"title": "Hello, World", "markdown_content": "# Print a greeting", "xp_reward": 50},
                {"title": "Variables", "hidden_tests": "[]"},
                {"title": "Loops"},
            ],
        },
    )
    assert response.status_code == 201
    return response.json()
