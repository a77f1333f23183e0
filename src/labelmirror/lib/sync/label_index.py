"""
label_index.py
- Tracks which live nodes contribute each short key, and what value each contributes.
- Resolves collisions last-writer-wins, but a key survives the removal of one
  contributor while another live node still exports it.
"""


class LabelIndex:
    def __init__(self):
        # short key -> {node name: value}, insertion order == write order
        self._contributors = {}
        # node name -> {short key: value}
        self._nodes = {}

    def __contains__(self, name):
        return name in self._nodes

    def __len__(self):
        return len(self._nodes)

    def names(self):
        return set(self._nodes)

    def projection(self, name):
        return dict(self._nodes.get(name, {}))

    def upsert(self, name, projected):
        """
        Replace a node's contribution with `projected`.

        Keys the node stopped exporting are released; every exported key moves
        the node to the most-recent-writer position.

        Returns:
            set[str]: Short keys whose visible value may have changed.
        """
        previous = self._nodes.get(name, {})
        touched = set()

        for key in set(previous) - set(projected):
            self._drop(key, name)
            touched.add(key)

        for key, value in projected.items():
            owners = self._contributors.setdefault(key, {})
            owners.pop(name, None)
            owners[name] = value
            touched.add(key)

        self._nodes[name] = dict(projected)
        return touched

    def release(self, name):
        """
        Remove a node's whole contribution.

        Returns:
            set[str]: Short keys whose visible value may have changed.
        """
        current = self._nodes.pop(name, None)
        if current is None:
            return set()
        for key in current:
            self._drop(key, name)
        return set(current)

    def resolve(self, key):
        """Value of the most recent remaining writer of `key`, or None when nobody exports it."""
        owners = self._contributors.get(key)
        if not owners:
            return None
        return next(reversed(owners.values()))

    def data(self):
        return {key: self.resolve(key) for key in self._contributors}

    def _drop(self, key, name):
        owners = self._contributors.get(key)
        if owners is None:
            return
        owners.pop(name, None)
        if not owners:
            del self._contributors[key]
