"""
configmap_store.py
- Document store that keeps the label mirror in a Kubernetes ConfigMap.
- Maps API status codes onto the fault taxonomy: 404 -> NotFoundFault,
  409 -> AlreadyExistsFault, anything else -> ConnectionFault.
"""

from kubernetes import client
from kubernetes.client.rest import ApiException
from loguru import logger
from urllib3.exceptions import HTTPError

from labelmirror.core.errors import AlreadyExistsFault, ConnectionFault, NotFoundFault
from labelmirror.core.models import MirrorDocument

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409

MANAGED_BY = {"app.kubernetes.io/managed-by": "label-mirror"}


class ConfigMapStore:
    def __init__(self, api, namespace):
        self.api = api
        self.namespace = namespace

    def _body(self, name, data):
        return client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(name=name, namespace=self.namespace, labels=dict(MANAGED_BY)),
            data=dict(data),
            immutable=False,
        )

    def get(self, name):
        try:
            config_map = self.api.read_namespaced_config_map(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                raise NotFoundFault(name)
            raise ConnectionFault("get_document", f"{self.namespace}/{name}", cause=e)
        except HTTPError as e:
            raise ConnectionFault("get_document", f"{self.namespace}/{name}", cause=e)
        return MirrorDocument(
            name=name,
            data=dict(config_map.data or {}),
            exists=True,
            immutable=bool(config_map.immutable),
        )

    def create(self, name, data):
        try:
            self.api.create_namespaced_config_map(namespace=self.namespace, body=self._body(name, data))
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise AlreadyExistsFault(name)
            raise ConnectionFault("create_document", f"{self.namespace}/{name}", cause=e)
        except HTTPError as e:
            raise ConnectionFault("create_document", f"{self.namespace}/{name}", cause=e)
        logger.info(f"[configmap_store] Created ConfigMap {self.namespace}/{name}")
        return MirrorDocument(name=name, data=dict(data), exists=True)

    def apply(self, name, data):
        # Replace rather than patch so keys dropped from the mapping disappear.
        try:
            self.api.replace_namespaced_config_map(name=name, namespace=self.namespace, body=self._body(name, data))
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                logger.warning(f"[configmap_store] ConfigMap {self.namespace}/{name} vanished, recreating it")
                try:
                    self.create(name, data)
                except AlreadyExistsFault:
                    raise ConnectionFault("apply_document", f"{self.namespace}/{name}", cause=e)
                return
            raise ConnectionFault("apply_document", f"{self.namespace}/{name}", cause=e)
        except HTTPError as e:
            raise ConnectionFault("apply_document", f"{self.namespace}/{name}", cause=e)
        logger.debug(f"[configmap_store] Replaced ConfigMap {self.namespace}/{name} with {len(data)} key(s)")
