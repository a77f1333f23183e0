"""
dry_run.py
- Wraps a document store so reads go through but writes are only logged.
"""

from loguru import logger

from labelmirror.core.errors import AlreadyExistsFault, NotFoundFault
from labelmirror.core.models import MirrorDocument


class DryRunStore:
    def __init__(self, store):
        self.store = store
        self.documents = {}

    def get(self, name):
        if name in self.documents:
            return self.documents[name]
        return self.store.get(name)

    def create(self, name, data):
        try:
            self.get(name)
        except NotFoundFault:
            logger.info(f"[dry_run] (Dry Run) Would create {name} with {dict(data)}")
            self.documents[name] = MirrorDocument(name=name, data=dict(data), exists=True)
            return self.documents[name]
        raise AlreadyExistsFault(name)

    def apply(self, name, data):
        logger.info(f"[dry_run] (Dry Run) Would apply {name} → {dict(data)}")
        self.documents[name] = MirrorDocument(name=name, data=dict(data), exists=True)
