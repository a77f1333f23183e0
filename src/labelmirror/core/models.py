"""
models.py
- Value types passed between node sources, the reconciler and the document stores.
- Watch events are a closed set of dataclasses tagged by EventType.
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Entity:
    """A cluster node as seen by the mirror: a unique name and its full label set."""

    name: str
    labels: dict = field(default_factory=dict, hash=False)


class EventType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    ERROR = "error"


@dataclass(frozen=True)
class Added:
    entity: Entity
    type = EventType.ADDED


@dataclass(frozen=True)
class Modified:
    entity: Entity
    type = EventType.MODIFIED


@dataclass(frozen=True)
class Deleted:
    entity: Entity
    type = EventType.DELETED


@dataclass(frozen=True)
class StreamError:
    reason: str = "unknown"
    expired: bool = False
    type = EventType.ERROR


@dataclass
class MirrorDocument:
    """
    The single persisted key-value artifact the mirror maintains.

    `exists` tells whether the document is present in the backing store;
    `immutable` is fixed at creation and always False for mirrors.
    """

    name: str
    data: dict = field(default_factory=dict)
    exists: bool = False
    immutable: bool = False


class LoopState(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    SYNCING = "syncing"
    DRAINING = "draining"
    STOPPED = "stopped"


class PersistPolicy(str, Enum):
    DRAIN = "drain"
    WRITE_THROUGH = "write-through"


class BootstrapPolicy(str, Enum):
    REBUILD = "rebuild"
    ADOPT = "adopt"
