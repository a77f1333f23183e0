"""
swarm_nodes.py
- Node source backed by Docker Swarm: node listing plus the daemon's node event stream.
- Node identity is the Swarm node ID; labels come from Spec.Labels.
- Removed nodes can no longer be inspected, so the last labels seen per node are cached.
"""

import threading

from docker.errors import DockerException, NotFound
from loguru import logger
from requests.exceptions import RequestException

from labelmirror.core.errors import ConnectionFault
from labelmirror.core.models import Added, Deleted, Entity, Modified

ACTIONS = {
    "create": Added,
    "update": Modified,
    "remove": Deleted,
}


def node_labels(node):
    return dict(node.attrs.get("Spec", {}).get("Labels") or {})


class SwarmNodeSource:
    def __init__(self, client):
        self.client = client
        self._known = {}
        self._stream = None
        self._lock = threading.Lock()

    def list_nodes(self):
        try:
            nodes = self.client.nodes.list()
        except (DockerException, RequestException) as e:
            raise ConnectionFault("list_nodes", cause=e)
        entities = [Entity(name=node.id, labels=node_labels(node)) for node in nodes]
        self._known = {entity.name: entity for entity in entities}
        logger.debug(f"[swarm_nodes] Listed {len(entities)} Swarm node(s)")
        return entities

    def watch_nodes(self):
        try:
            stream = self.client.events(decode=True, filters={"type": "node"})
        except (DockerException, RequestException) as e:
            raise ConnectionFault("watch_nodes", cause=e)
        with self._lock:
            self._stream = stream
        logger.info("[swarm_nodes] Listening for Swarm node events")
        return self._events(stream)

    def _events(self, stream):
        try:
            for raw in stream:
                event = self._translate(raw)
                if event is not None:
                    yield event
        except (DockerException, RequestException) as e:
            raise ConnectionFault("watch_nodes", cause=e)

    def _translate(self, raw):
        event_class = ACTIONS.get(raw.get("Action"))
        node_id = raw.get("Actor", {}).get("ID")
        if event_class is None or not node_id:
            return None

        if event_class is Deleted:
            entity = self._known.pop(node_id, Entity(name=node_id, labels={}))
            return Deleted(entity)

        try:
            node = self.client.nodes.get(node_id)
        except NotFound:
            logger.debug(f"[swarm_nodes] Node {node_id} disappeared before it could be inspected")
            return None
        except (DockerException, RequestException) as e:
            raise ConnectionFault("inspect_node", node_id, cause=e)

        entity = Entity(name=node_id, labels=node_labels(node))
        self._known[node_id] = entity
        return event_class(entity)

    def stop(self):
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
