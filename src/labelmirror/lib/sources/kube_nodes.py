"""
kube_nodes.py
- Node source backed by the Kubernetes API: list + watch of v1.Node.
- Resumes the watch from the last seen resourceVersion; a 410 Gone clears it so the
  next subscription starts fresh (the reconciler re-lists after stream faults).
"""

import threading

from kubernetes import watch
from kubernetes.client.rest import ApiException
from loguru import logger
from urllib3.exceptions import HTTPError

from labelmirror.core.constants import DEFAULT_WATCH_TIMEOUT
from labelmirror.core.errors import ConnectionFault
from labelmirror.core.models import Added, Deleted, Entity, Modified, StreamError

HTTP_GONE = 410

EVENT_TYPES = {
    "ADDED": Added,
    "MODIFIED": Modified,
    "DELETED": Deleted,
}


def node_to_entity(node):
    metadata = node.metadata
    return Entity(name=metadata.name, labels=dict(metadata.labels or {}))


class KubernetesNodeSource:
    def __init__(self, api, timeout_seconds=DEFAULT_WATCH_TIMEOUT, watch_factory=watch.Watch):
        self.api = api
        self.timeout_seconds = timeout_seconds
        self.resource_version = None
        self._watch_factory = watch_factory
        self._watcher = None
        self._lock = threading.Lock()

    def list_nodes(self):
        try:
            node_list = self.api.list_node()
        except (ApiException, HTTPError) as e:
            raise ConnectionFault("list_nodes", cause=e)
        self.resource_version = getattr(node_list.metadata, "resource_version", None)
        nodes = [node_to_entity(node) for node in node_list.items or []]
        logger.debug(f"[kube_nodes] Listed {len(nodes)} node(s) at resourceVersion {self.resource_version}")
        return nodes

    def watch_nodes(self):
        watcher = self._watch_factory()
        with self._lock:
            self._watcher = watcher
        kwargs = {"timeout_seconds": self.timeout_seconds}
        if self.resource_version:
            kwargs["resource_version"] = self.resource_version
        logger.info(f"[kube_nodes] Starting node watch from resourceVersion {self.resource_version}")
        return self._events(watcher, kwargs)

    def _events(self, watcher, kwargs):
        try:
            for event in watcher.stream(self.api.list_node, **kwargs):
                kind = event.get("type")
                obj = event.get("object")

                if kind == "ERROR":
                    yield self._stream_error(event.get("raw_object") or obj or {})
                    return

                event_class = EVENT_TYPES.get(kind)
                if event_class is None:
                    # BOOKMARK and anything newer carry no label changes.
                    continue

                metadata = getattr(obj, "metadata", None)
                if metadata is not None and metadata.resource_version:
                    self.resource_version = metadata.resource_version
                yield event_class(node_to_entity(obj))
        except ApiException as e:
            if e.status == HTTP_GONE:
                logger.warning("[kube_nodes] resourceVersion expired (410 Gone), next watch starts fresh")
                self.resource_version = None
                yield StreamError(reason=f"410 Gone: {e.reason}", expired=True)
                return
            raise ConnectionFault("watch_nodes", cause=e)
        except HTTPError as e:
            raise ConnectionFault("watch_nodes", cause=e)

    def _stream_error(self, status):
        code = status.get("code") if isinstance(status, dict) else None
        message = status.get("message", "") if isinstance(status, dict) else str(status)
        expired = code == HTTP_GONE
        if expired:
            self.resource_version = None
        logger.warning(f"[kube_nodes] Watch reported error (code={code}): {message}")
        return StreamError(reason=f"{code}: {message}", expired=expired)

    def stop(self):
        with self._lock:
            watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()
