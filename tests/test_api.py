"""Tests for the health, sync and metrics HTTP API."""

from unittest import mock

import pytest
import requests
from fastapi.testclient import TestClient

from conftest import FakeDocumentStore, FakeNodeSource, node
from labelmirror.core.models import LoopState
from labelmirror.main import create_app
from labelmirror.utils import healthcheck


@pytest.fixture
def loop(make_loop):
    loop = make_loop(FakeNodeSource([node("n1", zone="a"), node("n2", arch="arm64")]), FakeDocumentStore())
    loop.bootstrap()
    return loop


def client_for(loop):
    return TestClient(create_app(get_loop=lambda: loop))


class TestHealthz:
    """Tests for /healthz."""

    def test_starting_is_healthy(self):
        response = client_for(None).get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "state": "starting"}

    def test_syncing_is_healthy(self, loop):
        loop.state = LoopState.SYNCING

        response = client_for(loop).get("/healthz")

        assert response.status_code == 200
        assert response.json()["state"] == "syncing"

    @pytest.mark.parametrize("state", [LoopState.DRAINING, LoopState.STOPPED])
    def test_draining_is_unhealthy(self, loop, state):
        loop.state = state

        response = client_for(loop).get("/healthz")

        assert response.status_code == 503
        assert response.json() == {"status": "stopping", "state": state.value}


class TestSync:
    """Tests for POST /sync."""

    def test_rejected_unless_syncing(self, loop):
        response = client_for(loop).post("/sync")

        assert response.status_code == 409
        assert response.json() == {"status": "not_syncing"}

    def test_triggers_resync(self, loop):
        loop.state = LoopState.SYNCING
        loop.request_resync = mock.Mock()

        response = client_for(loop).post("/sync")

        assert response.status_code == 200
        assert response.json() == {"status": "triggered"}
        loop.request_resync.assert_called_once_with()


class TestMetrics:
    """Tests for /metrics."""

    def test_exposes_gauges(self, loop):
        response = client_for(loop).get("/metrics")

        assert response.status_code == 200
        assert "mirror_keys 2" in response.text
        assert "mirror_nodes 2" in response.text
        assert "mirror_syncing 0" in response.text
        assert "# TYPE mirror_persist_total counter" in response.text


class TestHealthcheckScript:
    """Tests for the healthcheck probe."""

    def test_ok(self, monkeypatch):
        monkeypatch.setattr(healthcheck.requests, "get", lambda url, timeout: mock.Mock(status_code=200))

        assert healthcheck.check("http://127.0.0.1:6060/healthz") is True

    def test_unhealthy_status(self, monkeypatch):
        monkeypatch.setattr(healthcheck.requests, "get", lambda url, timeout: mock.Mock(status_code=503, text="stopping"))

        assert healthcheck.check("http://127.0.0.1:6060/healthz") is False

    def test_unreachable(self, monkeypatch):
        def refuse(url, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(healthcheck.requests, "get", refuse)

        assert healthcheck.check("http://127.0.0.1:6060/healthz") is False
