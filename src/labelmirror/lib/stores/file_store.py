"""
file_store.py
- Document store that keeps each mirror as a YAML file: <root>/<namespace>/<name>.yml
- Create is exclusive (a concurrent writer surfaces as AlreadyExistsFault).
- Apply writes to a temp file and renames it into place so readers never see half a document.
"""

import os
import tempfile
from pathlib import Path

import yaml
from loguru import logger

from labelmirror.core.errors import AlreadyExistsFault, ConnectionFault, NotFoundFault
from labelmirror.core.models import MirrorDocument


class YamlFileStore:
    def __init__(self, root, namespace):
        self.root = Path(root)
        self.namespace = namespace

    def path_for(self, name):
        return self.root / self.namespace / f"{name}.yml"

    def _dump(self, name, data):
        return yaml.safe_dump(
            {"name": name, "namespace": self.namespace, "immutable": False, "data": dict(data)},
            default_flow_style=False,
            sort_keys=True,
        )

    def get(self, name):
        path = self.path_for(name)
        try:
            with open(path, "r") as f:
                document = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise NotFoundFault(name)
        except (OSError, yaml.YAMLError) as e:
            raise ConnectionFault("get_document", str(path), cause=e)
        return MirrorDocument(
            name=name,
            data={str(k): str(v) for k, v in (document.get("data") or {}).items()},
            exists=True,
            immutable=bool(document.get("immutable", False)),
        )

    def create(self, name, data):
        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "x") as f:
                f.write(self._dump(name, data))
        except FileExistsError:
            raise AlreadyExistsFault(name)
        except OSError as e:
            raise ConnectionFault("create_document", str(path), cause=e)
        logger.info(f"[file_store] Created {path}")
        return MirrorDocument(name=name, data=dict(data), exists=True)

    def apply(self, name, data):
        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(self._dump(name, data))
                os.replace(tmp_path, path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise ConnectionFault("apply_document", str(path), cause=e)
        logger.debug(f"[file_store] Wrote {len(data)} key(s) to {path}")
