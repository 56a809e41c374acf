"""Tests for settings loading and the command-line entry point."""

import json

import pytest
from docloom.__main__ import main, summarize
from docloom.core.ast_parser import analyze_source
from docloom.setting import get_settings, load_settings, reset_settings


TS_SOURCE = '''
function add(a: number, b: number): number {
  return a + b;
}
'''

CONFIG = '''
log_level: WARNING
placement:
  existing_comment_policy: stack_above
strategy:
  preference: local-only
remote:
  timeout: 4
'''


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DOCLOOM_CONFIG",
        "DOCLOOM_LOG_LEVEL",
        "DOCLOOM_STRATEGY",
        "DOCLOOM_REMOTE_URL",
        "DOCLOOM_REMOTE_MODEL",
        "DOCLOOM_REMOTE_TIMEOUT",
        "ANTHROPIC_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "docloom.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return str(path)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "calc.ts"
    path.write_text(TS_SOURCE, encoding="utf-8")
    return path


# =========================================================================
# Tests: Settings
# =========================================================================

class TestSettings:
    def test_yaml_overrides_defaults(self, config_file):
        settings = load_settings(config_file)
        assert settings.log_level == "WARNING"
        assert settings.placement.existing_comment_policy == "stack_above"
        assert settings.strategy.preference == "local-only"
        assert settings.remote.timeout == 4.0
        # Untouched keys keep their defaults
        assert settings.placement.claim_window == 10
        assert settings.remote.max_tries == 2

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings.strategy.preference == "auto"
        assert settings.placement.after_signature_languages == ["python"]

    def test_environment_overrides_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("DOCLOOM_STRATEGY", "remote-only")
        monkeypatch.setenv("DOCLOOM_REMOTE_TIMEOUT", "3.5")
        settings = load_settings(config_file)
        assert settings.strategy.preference == "remote-only"
        assert settings.remote.timeout == 3.5

    def test_config_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("DOCLOOM_CONFIG", config_file)
        assert get_settings().log_level == "WARNING"
        assert get_settings() is get_settings()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(str(path))

    def test_api_key(self, monkeypatch, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"))
        assert settings.api_key() is None
        monkeypatch.setenv("ANTHROPIC_API_KEY", "  secret  ")
        assert settings.api_key() == "secret"


# =========================================================================
# Tests: Commands
# =========================================================================

class TestCommands:
    def test_summarize(self):
        stats = summarize(analyze_source(TS_SOURCE, "typescript"))
        assert stats["total"] == 1
        assert stats["undocumented"] == 1
        assert stats["by_kind"] == {"function": 1}
        assert stats["tier"] == "exact"

    def test_analyze_json(self, source_file, config_file, capsys):
        assert main(["--config", config_file, "analyze", str(source_file), "--json"]) == 0
        out = capsys.readouterr().out
        stats = json.loads(out[out.index("{"):])
        assert stats["language"] == "typescript"
        assert stats["elements"][0]["name"] == "add"
        assert stats["elements"][0]["start_line"] == 2

    def test_place_writes_file(self, source_file, config_file, capsys):
        code = main([
            "--config", config_file,
            "place", str(source_file), "--line", "2", "--text", "adds two numbers", "--offline",
        ])
        assert code == 0
        text = source_file.read_text(encoding="utf-8")
        assert text.startswith("\n/**\n * Adds two numbers.\n")
        assert "[inserted]" in capsys.readouterr().out

    def test_place_dry_run(self, source_file, config_file, capsys):
        code = main([
            "--config", config_file,
            "place", str(source_file), "--line", "2", "--text", "adds two numbers", "--dry-run",
        ])
        assert code == 0
        assert source_file.read_text(encoding="utf-8") == TS_SOURCE
        assert "[preview]" in capsys.readouterr().out

    def test_place_with_nothing_to_document(self, tmp_path, config_file):
        path = tmp_path / "notes.txt"
        path.write_text("just words\n", encoding="utf-8")
        code = main(["--config", config_file, "place", str(path), "--line", "1", "--text", "x", "--offline"])
        assert code == 1

    def test_batch(self, source_file, config_file, capsys):
        code = main([
            "--config", config_file,
            "batch", str(source_file), "--item", "2:adds two numbers", "--offline",
        ])
        assert code == 0
        assert "1 inserted" in capsys.readouterr().out
        assert "@returns {number}" in source_file.read_text(encoding="utf-8")

    def test_batch_item_format(self, source_file):
        with pytest.raises(SystemExit):
            main(["batch", str(source_file), "--item", "no-line-number"])
