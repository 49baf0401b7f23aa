"""Tests for the FastAPI echo server."""

import pytest
from fastapi.testclient import TestClient

from resocket.echo_server import app


@pytest.fixture
def client():
    """Test client for the echo app."""
    return TestClient(app)


def test_root(client):
    """Test the info endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["endpoints"]["websocket"] == "/ws"


def test_health(client):
    """Test the health endpoint."""
    response = client.get("/health")
    assert response.json() == {"status": "healthy", "connections": 0}


def test_echo_text_and_bytes(client):
    """Test that text and binary frames come back unchanged."""
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("hello")
        assert websocket.receive_text() == "hello"

        websocket.send_bytes(b"\x00\xff")
        assert websocket.receive_bytes() == b"\x00\xff"

        assert client.get("/health").json()["connections"] == 1
