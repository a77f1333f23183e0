"""
label_projector.py
- Restricts a node's label set to one recognized namespace prefix and strips
  that prefix, e.g. `kubernetes.io/zone=a` -> `zone=a`.
- Also computes the short keys to drop when a node goes away.

The projection itself is pure; only an invalid prefix is rejected.
"""

from labelmirror.core.constants import DEFAULT_LABEL_PREFIX, LABEL_SEPARATOR
from labelmirror.core.errors import ConfigFault


def _split(key):
    namespace, sep, short = key.partition(LABEL_SEPARATOR)
    if not sep:
        return None, None
    return namespace, short


def _matching(labels, prefix):
    for key, value in (labels or {}).items():
        namespace, short = _split(key)
        # Only `<prefix>/<non-empty short>` keys are mirrored.
        if namespace != prefix or not short:
            continue
        yield short, value


def project_labels(labels, prefix=DEFAULT_LABEL_PREFIX):
    """Return {short_key: value} for every label under `prefix/`."""
    return dict(_matching(labels, prefix))


def removal_keys(labels, prefix=DEFAULT_LABEL_PREFIX):
    """Return the short keys a node contributed, i.e. the keys to delete when it is removed."""
    return {short for short, _ in _matching(labels, prefix)}


class LabelProjector:
    """Projection bound to a single recognized prefix."""

    def __init__(self, prefix=DEFAULT_LABEL_PREFIX):
        if not prefix or LABEL_SEPARATOR in prefix:
            raise ConfigFault(f"Invalid label prefix {prefix!r}: must be non-empty and contain no '{LABEL_SEPARATOR}'")
        self.prefix = prefix

    def project(self, labels):
        return project_labels(labels, self.prefix)

    def removal_keys(self, labels):
        return removal_keys(labels, self.prefix)

    def __repr__(self):
        return f"LabelProjector(prefix={self.prefix!r})"
