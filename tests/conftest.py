"""Pytest configuration and fixtures."""

import threading

import pytest
from tenacity import wait_none

from labelmirror.core.cancellation import CancellationToken
from labelmirror.core.errors import AlreadyExistsFault, ConnectionFault, NotFoundFault
from labelmirror.core.models import Added, Deleted, Entity, MirrorDocument, Modified
from labelmirror.lib.sync.reconciler import ReconciliationLoop

# Stream script marker: cancel the token, then hold the stream open until stopped.
CANCEL = object()


class FakeNodeSource:
    """
    In-memory node source.

    `streams` is consumed one entry per watch_nodes() call. An entry is either a
    list of events (CANCEL allowed) or an exception to raise when opening. Once
    the scripts run out, the next subscription cancels the token.
    """

    def __init__(self, nodes=(), streams=(), token=None, list_failures=0):
        self.nodes = {node.name: node for node in nodes}
        self.streams = list(streams)
        self.token = token
        self.list_failures = list_failures
        self.list_calls = 0
        self.watch_calls = 0
        self._stopped = threading.Event()

    def list_nodes(self):
        self.list_calls += 1
        if self.list_failures:
            self.list_failures -= 1
            raise ConnectionFault("list_nodes", cause="cluster unreachable")
        return list(self.nodes.values())

    def watch_nodes(self):
        self.watch_calls += 1
        self._stopped.clear()
        if not self.streams:
            self.token.cancel("scripts exhausted")
            return iter(())
        script = self.streams.pop(0)
        if isinstance(script, Exception):
            raise script
        return self._play(script)

    def _play(self, script):
        for event in script:
            if event is CANCEL:
                self.token.cancel("test")
                self._stopped.wait(5)
                return
            if isinstance(event, (Added, Modified)):
                self.nodes[event.entity.name] = event.entity
            elif isinstance(event, Deleted):
                self.nodes.pop(event.entity.name, None)
            yield event

    def stop(self):
        self._stopped.set()


class FakeDocumentStore:
    def __init__(self, documents=None, apply_failures=0, get_failures=0, conflict_data=None):
        self.documents = dict(documents or {})
        self.apply_failures = apply_failures
        self.get_failures = get_failures
        self.conflict_data = conflict_data
        self.created = []
        self.applied = []

    def get(self, name):
        if self.get_failures:
            self.get_failures -= 1
            raise ConnectionFault("get_document", name, cause="store unreachable")
        if name not in self.documents:
            raise NotFoundFault(name)
        return MirrorDocument(name=name, data=dict(self.documents[name]), exists=True)

    def create(self, name, data):
        if self.conflict_data is not None:
            # Another writer wins the race just before us.
            self.documents[name] = dict(self.conflict_data)
            self.conflict_data = None
            raise AlreadyExistsFault(name)
        if name in self.documents:
            raise AlreadyExistsFault(name)
        self.documents[name] = dict(data)
        self.created.append(dict(data))
        return MirrorDocument(name=name, data=dict(data), exists=True)

    def apply(self, name, data):
        if self.apply_failures:
            self.apply_failures -= 1
            raise ConnectionFault("apply_document", name, cause="store unreachable")
        self.documents[name] = dict(data)
        self.applied.append(dict(data))


def node(name, **labels):
    """Entity helper: node("n1", zone="a") -> labels {"kubernetes.io/zone": "a"}."""
    return Entity(name=name, labels={f"kubernetes.io/{key}": value for key, value in labels.items()})


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def make_loop(token):
    def factory(source, store, **kwargs):
        if source.token is None:
            source.token = token
        kwargs.setdefault("backoff", wait_none())
        kwargs.setdefault("cancel_token", token)
        return ReconciliationLoop(source, store, "node-labels", **kwargs)

    return factory
