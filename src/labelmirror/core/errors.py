"""
errors.py
- Fault taxonomy shared by the reconciler, the node sources and the document stores.
- Adapters translate client library exceptions into these at the boundary so the
  reconciler never has to know which backend it is talking to.
"""


class MirrorError(Exception):
    """Base class for every fault raised by label-mirror."""


class ConfigFault(MirrorError):
    """Missing or invalid configuration. Fatal at startup, never retried."""


class ConnectionFault(MirrorError):
    """
    The node source or the document store could not be reached.

    Args:
        operation (str): What was being attempted (e.g. "list_nodes", "apply").
        target (str): Entity or document the operation was about, if any.
        cause (Exception): The underlying client error, if any.
    """

    def __init__(self, operation, target=None, cause=None):
        self.operation = operation
        self.target = target
        self.cause = cause
        where = f" {target}" if target else ""
        why = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation}{where} failed{why}")


class StreamFault(ConnectionFault):
    """
    The watch stream reported an error or could not be read.

    `progressed` is True when the stream delivered at least one event before
    failing, which resets the consecutive-failure budget.
    """

    def __init__(self, reason, progressed=False):
        self.progressed = progressed
        super().__init__("watch_nodes", cause=reason)


class NotFoundFault(MirrorError):
    """The requested document does not exist in the backing store."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"document {name} not found")


class AlreadyExistsFault(MirrorError):
    """Create raced with another writer and the document already exists."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"document {name} already exists")
