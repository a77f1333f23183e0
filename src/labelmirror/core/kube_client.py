"""
kube_client.py
- Builds a CoreV1Api client for the Kubernetes node source and the ConfigMap store.
- Prefers an explicit kubeconfig, then ~/.kube/config, then in-cluster credentials.
"""

import os

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException
from loguru import logger

from labelmirror.core.errors import ConnectionFault


def default_kubeconfig():
    home = os.path.expanduser("~")
    path = os.path.join(home, ".kube", "config")
    return path if os.path.exists(path) else None


def connect(kubeconfig=None):
    """
    Load cluster credentials and return a CoreV1Api.

    Args:
        kubeconfig (str): Path to a kubeconfig file. Optional.

    Raises:
        ConnectionFault: If no usable credentials were found.
    """
    path = kubeconfig or default_kubeconfig()
    try:
        if path:
            config.load_kube_config(config_file=path)
            logger.info(f"[kube_client] Loaded kubeconfig from {path}")
        else:
            config.load_incluster_config()
            logger.info("[kube_client] Loaded in-cluster service account credentials")
    except (ConfigException, OSError) as e:
        raise ConnectionFault("load_kubeconfig", path or "in-cluster", cause=e)
    return client.CoreV1Api()
