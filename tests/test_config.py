"""Tests for configuration loading."""

import pytest

from labelmirror.core.config import CONFIG_FILE, MirrorSettings, load_settings, resolve_config_file
from labelmirror.core.config_loader import load_yaml
from labelmirror.core.errors import ConfigFault
from labelmirror.core.models import BootstrapPolicy, PersistPolicy


class TestLoadSettings:
    """Tests for load_settings layering and validation."""

    def test_defaults(self, tmp_path):
        settings = load_settings({"namespace": "kube-system", "name": "node-labels"}, env={}, config_file=str(tmp_path / "none.yml"))

        assert settings == MirrorSettings(namespace="kube-system", name="node-labels")
        assert settings.prefix == "kubernetes.io"
        assert settings.persist_policy is PersistPolicy.DRAIN
        assert settings.bootstrap_policy is BootstrapPolicy.REBUILD

    def test_missing_namespace_is_config_fault(self, tmp_path):
        with pytest.raises(ConfigFault, match="namespace"):
            load_settings({"name": "node-labels"}, env={}, config_file=str(tmp_path / "none.yml"))

    def test_missing_name_is_config_fault(self, tmp_path):
        with pytest.raises(ConfigFault, match="name"):
            load_settings({"namespace": "default"}, env={}, config_file=str(tmp_path / "none.yml"))

    def test_env_values_are_coerced(self, tmp_path):
        env = {
            "MIRROR_NAMESPACE": "ops",
            "MIRROR_NAME": "labels",
            "RESUBSCRIBE_ATTEMPTS": "9",
            "RUN_ONCE": "true",
            "PERSIST_POLICY": "write-through",
            "BOOTSTRAP_POLICY": "ADOPT",
        }

        settings = load_settings(env=env, config_file=str(tmp_path / "none.yml"))

        assert settings.resubscribe_attempts == 9
        assert settings.run_once is True
        assert settings.persist_policy is PersistPolicy.WRITE_THROUGH
        assert settings.bootstrap_policy is BootstrapPolicy.ADOPT

    def test_precedence_cli_over_env_over_file(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("mirror:\n  namespace: from-file\n  name: from-file\n  prefix: file.io\n  drain_attempts: 7\n")
        env = {"MIRROR_NAME": "from-env", "LABEL_PREFIX": "env.io"}

        settings = load_settings({"prefix": "cli.io", "namespace": None}, env=env, config_file=str(config_file))

        assert settings.namespace == "from-file"
        assert settings.name == "from-env"
        assert settings.prefix == "cli.io"
        assert settings.drain_attempts == 7

    @pytest.mark.parametrize(
        "overrides",
        [
            {"source": "nomad"},
            {"store": "s3"},
            {"persist_policy": "sometimes"},
            {"bootstrap_policy": "merge"},
            {"drain_attempts": "many"},
            {"resubscribe_attempts": 0},
        ],
    )
    def test_invalid_values(self, tmp_path, overrides):
        base = {"namespace": "default", "name": "node-labels"}
        base.update(overrides)

        with pytest.raises(ConfigFault):
            load_settings(base, env={}, config_file=str(tmp_path / "none.yml"))


class TestResolveConfigFile:
    """Tests for picking the YAML config path."""

    def test_explicit_path_wins(self):
        assert resolve_config_file("/tmp/explicit.yml", env={"CONFIG_FILE": "/tmp/env.yml"}) == "/tmp/explicit.yml"

    def test_environment_then_default(self):
        assert resolve_config_file(env={"CONFIG_FILE": "/tmp/env.yml"}) == "/tmp/env.yml"
        assert resolve_config_file(env={}) == CONFIG_FILE


class TestLoadYaml:
    """Tests for the YAML loader."""

    def test_missing_file(self, tmp_path):
        assert load_yaml(str(tmp_path / "missing.yml")) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("mirror: [unclosed\n")

        assert load_yaml(str(path)) == {}

    def test_non_mapping_top_level(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")

        assert load_yaml(str(path)) == {}
