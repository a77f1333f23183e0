"""Tests for label projection."""

import pytest

from labelmirror.core.errors import ConfigFault
from labelmirror.lib.sync.label_projector import LabelProjector, project_labels, removal_keys


class TestProject:
    """Tests for LabelProjector.project."""

    def test_keeps_only_recognized_prefix(self):
        labels = {
            "kubernetes.io/zone": "a",
            "kubernetes.io/hostname": "n1",
            "custom/x": "y",
        }

        assert LabelProjector().project(labels) == {"zone": "a", "hostname": "n1"}

    def test_keys_without_separator_are_skipped(self):
        labels = {"kubernetes.io": "bare", "plain": "value", "kubernetes.io/arch": "amd64"}

        assert LabelProjector().project(labels) == {"arch": "amd64"}

    def test_prefix_must_match_whole_segment(self):
        labels = {
            "beta.kubernetes.io/arch": "amd64",
            "node-role.kubernetes.io/master": "",
            "kubernetes.io.extra/foo": "bar",
            "kubernetes.io/os": "linux",
        }

        assert LabelProjector().project(labels) == {"os": "linux"}

    def test_splits_on_first_separator_only(self):
        assert project_labels({"kubernetes.io/a/b": "v"}) == {"a/b": "v"}

    def test_empty_short_name_is_skipped(self):
        assert project_labels({"kubernetes.io/": "v"}) == {}

    def test_empty_and_none_inputs(self):
        projector = LabelProjector()

        assert projector.project({}) == {}
        assert projector.project(None) == {}

    def test_custom_prefix(self):
        labels = {"topology.example.com/rack": "r1", "kubernetes.io/zone": "a"}

        assert LabelProjector("topology.example.com").project(labels) == {"rack": "r1"}

    def test_input_is_not_mutated(self):
        labels = {"kubernetes.io/zone": "a", "custom/x": "y"}
        snapshot = dict(labels)

        LabelProjector().project(labels)

        assert labels == snapshot

    @pytest.mark.parametrize("prefix", ["", "kubernetes.io/zone", None])
    def test_invalid_prefix_rejected(self, prefix):
        with pytest.raises(ConfigFault):
            LabelProjector(prefix)


class TestRemovalKeys:
    """Tests for LabelProjector.removal_keys."""

    def test_returns_short_keys_only(self):
        labels = {"kubernetes.io/zone": "a", "kubernetes.io/arch": "amd64", "custom/x": "y", "bare": "1"}

        assert LabelProjector().removal_keys(labels) == {"zone", "arch"}

    def test_matches_projection_keys(self):
        labels = {"kubernetes.io/zone": "a", "other.io/zone": "b", "kubernetes.io/os": "linux"}

        assert removal_keys(labels) == set(project_labels(labels))

    def test_empty_labels(self):
        assert removal_keys({}) == set()
