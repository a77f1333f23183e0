#!/usr/bin/env python3
"""
label_mirror.py
- Wires MirrorSettings to a node source, a document store and the reconciliation loop.
- Called by the CLI entrypoint and by the long-running service in main.py.
"""

from loguru import logger

from labelmirror.core import docker_client, kube_client
from labelmirror.core.cancellation import CancellationToken
from labelmirror.core.errors import ConnectionFault
from labelmirror.lib.sources.kube_nodes import KubernetesNodeSource
from labelmirror.lib.sources.swarm_nodes import SwarmNodeSource
from labelmirror.lib.stores.configmap_store import ConfigMapStore
from labelmirror.lib.stores.dry_run import DryRunStore
from labelmirror.lib.stores.file_store import YamlFileStore
from labelmirror.lib.sync.label_projector import LabelProjector
from labelmirror.lib.sync.reconciler import ReconciliationLoop

# The loop currently running in this process, read by the health/metrics API.
active_loop = None


def build_source(settings, kube_api=None):
    if settings.source == "swarm":
        client = docker_client.connect()
        if not docker_client.is_swarm_manager(client):
            raise ConnectionFault("list_nodes", cause="Docker daemon is not an active Swarm manager")
        return SwarmNodeSource(client)
    api = kube_api or kube_client.connect(settings.kubeconfig)
    return KubernetesNodeSource(api, timeout_seconds=settings.watch_timeout)


def build_store(settings, kube_api=None):
    if settings.store == "file":
        store = YamlFileStore(settings.store_path, settings.namespace)
    else:
        api = kube_api or kube_client.connect(settings.kubeconfig)
        store = ConfigMapStore(api, settings.namespace)
    if settings.dry_run:
        logger.info("[label_mirror] DRY_RUN=true, document writes will only be logged")
        store = DryRunStore(store)
    return store


def build_loop(settings, cancel_token=None, source=None, store=None):
    """Assemble a ReconciliationLoop; explicit source/store override the configured ones."""
    kube_api = None
    needs_kube = (source is None and settings.source == "kubernetes") or (store is None and settings.store == "configmap")
    if needs_kube:
        kube_api = kube_client.connect(settings.kubeconfig)

    return ReconciliationLoop(
        source=source or build_source(settings, kube_api),
        store=store or build_store(settings, kube_api),
        document_name=settings.name,
        projector=LabelProjector(settings.prefix),
        cancel_token=cancel_token or CancellationToken(),
        persist_policy=settings.persist_policy,
        bootstrap_policy=settings.bootstrap_policy,
        resubscribe_attempts=settings.resubscribe_attempts,
        drain_attempts=settings.drain_attempts,
        one_shot=settings.run_once,
    )


def run(settings, cancel_token=None, source=None, store=None):
    """
    Run the label mirror until cancelled.

    Returns:
        dict: The final mirrored mapping.
    """
    global active_loop

    logger.info(
        f"[label_mirror] Mirroring '{settings.prefix}/*' node labels from {settings.source} "
        f"into {settings.store} document {settings.namespace}/{settings.name}"
    )
    loop = build_loop(settings, cancel_token=cancel_token, source=source, store=store)
    active_loop = loop
    return loop.run()
