"""Smoke tests for the postsync CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from postsync import __version__
from postsync.cli import app


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def store_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate the CLI from real config files and environment."""
    for var in ("POSTSYNC_DIR", "POSTSYNC_BACKEND", "GITHUB_OWNER", "GITHUB_REPO", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("postsync.config.GLOBAL_CONFIG", tmp_path / "no-global.toml")
    return tmp_path / "store"


@pytest.fixture
def post_file(tmp_path: Path) -> Path:
    data = {
        "id": "cli-post",
        "metadata": {
            "title": "From the CLI",
            "author": "Ada",
            "category": "notes",
            "readTime": "2 min",
            "featured": False,
            "status": "published",
            "date": "2024-02-02",
        },
        "content": {"sections": [{"id": "s1", "type": "text", "content": "<p>Hi</p>"}]},
    }
    path = tmp_path / "post.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _invoke(runner: CliRunner, store_dir: Path, *args: str):
    return runner.invoke(app, ["--dir", str(store_dir), *args])


class TestCLI:
    """Tests for the CLI entry point."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("list", "show", "save", "delete", "export", "import", "sync", "recent"):
            assert command in result.stdout

    def test_list_empty(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "list")
        assert result.exit_code == 0
        assert "No posts found" in result.stdout

    def test_save_show_delete(self, runner: CliRunner, store_dir: Path, post_file: Path) -> None:
        result = _invoke(runner, store_dir, "save", str(post_file))
        assert result.exit_code == 0, result.stdout
        assert "cli-post" in result.stdout

        result = _invoke(runner, store_dir, "show", "cli-post")
        assert result.exit_code == 0
        assert "From the CLI" in result.stdout

        result = _invoke(runner, store_dir, "list")
        assert "cli-post" in result.stdout

        result = _invoke(runner, store_dir, "delete", "cli-post")
        assert result.exit_code == 0

        result = _invoke(runner, store_dir, "show", "cli-post")
        assert result.exit_code == 1
        assert "Post not found" in result.stdout

    def test_save_invalid_file(self, runner: CliRunner, store_dir: Path, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text('{"id": "x"}', encoding="utf-8")

        result = _invoke(runner, store_dir, "save", str(bad))
        assert result.exit_code == 1
        assert "Invalid post" in result.stdout

    def test_export_and_import(
        self, runner: CliRunner, store_dir: Path, post_file: Path, tmp_path: Path
    ) -> None:
        _invoke(runner, store_dir, "save", str(post_file))
        package = tmp_path / "exported.ocblog"

        result = _invoke(runner, store_dir, "export", "cli-post", str(package))
        assert result.exit_code == 0, result.stdout
        assert package.exists()

        other_store = tmp_path / "other-store"
        result = _invoke(runner, other_store, "import", str(package))
        assert result.exit_code == 0, result.stdout

        result = _invoke(runner, other_store, "show", "cli-post")
        assert result.exit_code == 0
        assert "From the CLI" in result.stdout

        result = _invoke(runner, other_store, "recent")
        assert "exported.ocblog" in result.stdout

    def test_html(self, runner: CliRunner, store_dir: Path, post_file: Path, tmp_path: Path) -> None:
        _invoke(runner, store_dir, "save", str(post_file))
        dest = tmp_path / "post.html"

        result = _invoke(runner, store_dir, "html", "cli-post", str(dest))
        assert result.exit_code == 0
        assert "<h1>From the CLI</h1>" in dest.read_text(encoding="utf-8")

    def test_sync(self, runner: CliRunner, store_dir: Path, post_file: Path) -> None:
        _invoke(runner, store_dir, "save", str(post_file))
        result = _invoke(runner, store_dir, "sync")
        assert result.exit_code == 0
        assert "Synced 1 post(s)" in result.stdout

    def test_recent_empty_and_clear(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "recent")
        assert "No recent files" in result.stdout

        result = _invoke(runner, store_dir, "recent", "--clear")
        assert result.exit_code == 0
        assert "cleared" in result.stdout

    def test_unknown_backend_flag(self, runner: CliRunner, store_dir: Path) -> None:
        result = _invoke(runner, store_dir, "--backend", "bogus", "list")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_unknown_backend_env(
        self, runner: CliRunner, store_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("POSTSYNC_BACKEND", "bogus")
        result = _invoke(runner, store_dir, "list")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout
