"""Tests for runtime configuration loading and precedence."""

import json

from hookauditor.config_runtime import DEFAULTS, HooksConfig, load_runtime_config


class TestLoadRuntimeConfig:
    def test_defaults_without_files(self, tmp_path):
        cfg = load_runtime_config(str(tmp_path))
        assert cfg == DEFAULTS
        assert cfg is not DEFAULTS
        assert cfg["hooks"] is not DEFAULTS["hooks"]

    def test_pyproject_section(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            '[tool.hookauditor.hooks]\nadditional_hooks = "^useAsyncEffect$"\n'
            "[tool.hookauditor.analysis]\nworkers = 8\n"
        )
        cfg = load_runtime_config(str(tmp_path))
        assert cfg["hooks"]["additional_hooks"] == "^useAsyncEffect$"
        assert cfg["analysis"]["workers"] == 8

    def test_json_overrides_pyproject(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.hookauditor.analysis]\nworkers = 8\n")
        (tmp_path / ".hookauditor.json").write_text(json.dumps({"analysis": {"workers": 2}}))
        cfg = load_runtime_config(str(tmp_path))
        assert cfg["analysis"]["workers"] == 2

    def test_environment_overrides_files(self, tmp_path, monkeypatch):
        (tmp_path / ".hookauditor.json").write_text(json.dumps({"analysis": {"workers": 2}}))
        monkeypatch.setenv("HOOKAUDITOR_ANALYSIS_WORKERS", "6")
        monkeypatch.setenv("HOOKAUDITOR_HOOKS_FLAG_STABLE_DEPENDENCIES", "yes")
        monkeypatch.setenv("HOOKAUDITOR_HOOKS_ADDITIONAL_STABLE_IDENTIFIERS", "store, api")
        cfg = load_runtime_config(str(tmp_path))
        assert cfg["analysis"]["workers"] == 6
        assert cfg["hooks"]["flag_stable_dependencies"] is True
        assert cfg["hooks"]["additional_stable_identifiers"] == ["store", "api"]

    def test_invalid_environment_value_keeps_previous(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOOKAUDITOR_ANALYSIS_WORKERS", "many")
        monkeypatch.setenv("HOOKAUDITOR_HOOKS_STRICT_MEMBER_DEPENDENCIES", "maybe")
        cfg = load_runtime_config(str(tmp_path))
        assert cfg["analysis"]["workers"] == 4
        assert cfg["hooks"]["strict_member_dependencies"] is False

    def test_type_mismatch_is_ignored(self, tmp_path):
        (tmp_path / ".hookauditor.json").write_text(
            json.dumps({"analysis": {"workers": "four"}, "hooks": {"flag_stable_dependencies": 1}})
        )
        cfg = load_runtime_config(str(tmp_path))
        assert cfg["analysis"]["workers"] == 4
        assert cfg["hooks"]["flag_stable_dependencies"] is False

    def test_unknown_keys_and_broken_files_are_ignored(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("not = [valid toml\n")
        (tmp_path / ".hookauditor.json").write_text(json.dumps({"hooks": {"nope": True}}))
        cfg = load_runtime_config(str(tmp_path))
        assert "nope" not in cfg["hooks"]
        assert cfg == DEFAULTS


class TestHooksConfig:
    def test_from_runtime(self, tmp_path):
        (tmp_path / ".hookauditor.json").write_text(
            json.dumps(
                {
                    "hooks": {
                        "helper_prefix": "hook",
                        "additional_stable_identifiers": ["store"],
                        "strict_member_dependencies": True,
                    }
                }
            )
        )
        config = HooksConfig.from_runtime(load_runtime_config(str(tmp_path)))
        assert config.helper_prefix == "hook"
        assert config.additional_hooks is None
        assert config.additional_stable_identifiers == ("store",)
        assert config.strict_member_dependencies is True
        assert config.flag_stable_dependencies is False

    def test_defaults(self):
        config = HooksConfig.from_runtime(DEFAULTS)
        assert config == HooksConfig()
