"""Tests for application wiring and lifecycle."""

from __future__ import annotations

import socketio
from fastapi.testclient import TestClient

from main import create_app, create_asgi_app
from Realtime.gateway import RealtimeGateway


def test_root_endpoint(settings, fake_db) -> None:
    with TestClient(create_app(settings, db=fake_db)) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "SportsBook API running"}


def test_lifespan_attaches_and_detaches_gateway(settings, fake_db) -> None:
    app = create_app(settings, db=fake_db)
    socket_server = app.state.socket_server
    assert socket_server.gateway is None

    with TestClient(app):
        gateway = app.state.gateway
        assert isinstance(gateway, RealtimeGateway)
        assert socket_server.gateway is gateway
        assert app.state.db is fake_db

    assert socket_server.gateway is None
    assert len(gateway.registry) == 0


def test_routes_use_injected_store(settings, fake_db, tokens, user) -> None:
    headers = {"Authorization": f"Bearer {tokens.issue(user['id'])}"}

    with TestClient(create_app(settings, db=fake_db)) as client:
        response = client.get("/api/auth/me", headers=headers)
        favorites = client.get("/api/users/favorites", headers=headers)

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "ada@example.com"
    assert favorites.status_code == 200
    assert favorites.json()["favorites"] == []


def test_asgi_app_wraps_http_app(settings) -> None:
    asgi_app = create_asgi_app(settings)

    assert isinstance(asgi_app, socketio.ASGIApp)
