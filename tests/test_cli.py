"""Tests for the simple-memory command line interface."""

import json

import pytest

from simple_memory.__main__ import build_parser, load_settings, run


@pytest.fixture
def data_dir(temp_dir):
    return temp_dir / "data"


class TestParser:
    def test_default_command_is_serve(self):
        args = build_parser().parse_args([])
        assert args.command is None

    def test_global_options(self, temp_dir):
        args = build_parser().parse_args(["--log-level", "debug", "--data-dir", str(temp_dir)])
        assert args.log_level == "DEBUG"
        assert args.data_dir == temp_dir

    def test_cli_overrides_settings(self, temp_dir, monkeypatch):
        monkeypatch.setenv("MCP_MEMORY_DIR", "/somewhere/else")
        args = build_parser().parse_args(["--data-dir", str(temp_dir), "stats"])
        settings = load_settings(args)
        assert settings.data_dir == temp_dir

    def test_environment_settings(self, monkeypatch, temp_dir):
        monkeypatch.setenv("MCP_MEMORY_DIR", str(temp_dir))
        monkeypatch.setenv("MCP_MEMORY_DEFAULT_LIMIT", "7")
        settings = load_settings(build_parser().parse_args(["stats"]))
        assert settings.data_dir == temp_dir
        assert settings.default_limit == 7
        assert settings.get_sqlite_path() == (temp_dir / "memory.db").resolve()


class TestInit:
    def test_creates_config(self, temp_dir, capsys):
        assert run(["init", "--dir", str(temp_dir)]) == 0

        config = json.loads((temp_dir / ".mcp.json").read_text())
        assert config["mcpServers"]["mcp-simple-memory"] == {
            "command": "simple-memory",
            "args": ["serve"],
        }
        assert "Added" in capsys.readouterr().out

    def test_keeps_other_servers(self, temp_dir):
        path = temp_dir / ".mcp.json"
        path.write_text(json.dumps({"mcpServers": {"other": {"command": "x"}}}))

        run(["init", "--dir", str(temp_dir)])

        servers = json.loads(path.read_text())["mcpServers"]
        assert set(servers) == {"other", "mcp-simple-memory"}

    def test_idempotent(self, temp_dir, capsys):
        run(["init", "--dir", str(temp_dir)])
        before = (temp_dir / ".mcp.json").read_text()

        assert run(["init", "--dir", str(temp_dir)]) == 0

        assert (temp_dir / ".mcp.json").read_text() == before
        assert "already configured" in capsys.readouterr().out

    def test_invalid_json(self, temp_dir, capsys):
        (temp_dir / ".mcp.json").write_text("{not json")

        assert run(["init", "--dir", str(temp_dir)]) == 1
        assert "not valid JSON" in capsys.readouterr().err

    def test_non_object_json(self, temp_dir):
        (temp_dir / ".mcp.json").write_text("[1, 2]")
        assert run(["init", "--dir", str(temp_dir)]) == 1


class TestStatsAndImport:
    def test_stats_on_empty_store(self, data_dir, capsys):
        assert run(["--data-dir", str(data_dir), "stats", "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["total_memories"] == 0
        assert data["schema_version"] == 3
        assert data["vector_search"] is False
        assert (data_dir / "memory.db").exists()

    def test_stats_text(self, data_dir, capsys):
        assert run(["--data-dir", str(data_dir), "stats"]) == 0
        out = capsys.readouterr().out
        assert "Memories:    0" in out
        assert "semantic search off" in out

    def test_import_markdown(self, data_dir, temp_dir, capsys):
        source = temp_dir / "notes.md"
        source.write_text("# Setup\nInstall deps\n\n# Usage\nRun the CLI\n", encoding="utf-8")

        code = run(
            [
                "--data-dir",
                str(data_dir),
                "import",
                str(source),
                "--project",
                "docs",
                "--tags",
                "Imported, notes",
            ]
        )

        assert code == 0
        assert "Imported 2 memories" in capsys.readouterr().out

        run(["--data-dir", str(data_dir), "stats", "--json"])
        data = json.loads(capsys.readouterr().out)
        assert data["total_memories"] == 2
        assert data["by_project"] == {"docs": 2}
        assert data["total_tags"] == 2

    def test_import_missing_file(self, data_dir, temp_dir, capsys):
        assert run(["--data-dir", str(data_dir), "import", str(temp_dir / "nope.md")]) == 1
        assert "cannot read" in capsys.readouterr().err

    def test_import_empty_file(self, data_dir, temp_dir):
        source = temp_dir / "empty.md"
        source.write_text("   \n")
        assert run(["--data-dir", str(data_dir), "import", str(source)]) == 1


def test_reembed_without_provider(data_dir, capsys):
    assert run(["--data-dir", str(data_dir), "reembed"]) == 1
    assert "no embedding provider" in capsys.readouterr().err


def test_http_requires_api_key(data_dir):
    assert run(["--data-dir", str(data_dir), "http"]) == 1


def test_unusable_data_dir(temp_dir):
    blocker = temp_dir / "file"
    blocker.write_text("x")
    assert run(["--data-dir", str(blocker), "stats"]) == 1
