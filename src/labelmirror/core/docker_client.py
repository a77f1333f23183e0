"""
docker_client.py
- Provides a Docker SDK client for the Swarm node source.
- Turns initialization errors into ConnectionFault.
"""

from docker import from_env
from docker.errors import DockerException

from labelmirror.core.errors import ConnectionFault


def connect():
    """Return a client configured from DOCKER_HOST and friends."""
    try:
        return from_env()
    except DockerException as e:
        raise ConnectionFault("docker_from_env", cause=e)


def is_swarm_manager(client):
    """True when the daemon is a Swarm manager, the only role that can list nodes."""
    try:
        info = client.info()
    except DockerException:
        return False
    swarm = info.get("Swarm", {})
    return swarm.get("LocalNodeState") == "active" and bool(swarm.get("ControlAvailable"))
