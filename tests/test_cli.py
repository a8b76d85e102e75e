"""CLI tests."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from blame_hue import __version__
from blame_hue.cli import app
from blame_hue.config import STATE_FILENAME
from tests.helpers_git import commit_all, init_repo, write_file

runner = CliRunner()


def _colored_repo(tmp_path: Path) -> tuple[Path, Path]:
    repo = init_repo(tmp_path)
    write_file(
        repo,
        ".blame-hue.toml",
        'authors_danger_config = "j@x.com=80"\ndebounce_ms = 10\n',
    )
    path = write_file(repo, "app.js", "const a = 0;\n\nlet x = 1;\n")
    commit_all(repo, "baseline", author_email="j@x.com")
    return repo, path


def test_root_help_works() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "danger level" in result.stdout
    for command in ("show", "explain", "watch", "toggle", "rules", "config-init"):
        assert command in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_show_json_reports_colored_lines(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)

    result = runner.invoke(app, ["show", str(path), "--repo", str(repo), "--format", "json"])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["file"] == str(path.resolve())
    assert payload["meta"]["show_danger_colors"] is True
    assert payload["meta"]["head"]
    assert payload["directives"] == [
        {
            "danger_level": 80,
            "background_color": "hsla(0, 80%, 50%, 0.35)",
            "line_indexes": [0, 1, 2],
        }
    ]


def test_show_with_edited_buffer_skips_changed_line(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)
    buffer = tmp_path / "buffer.js"
    buffer.write_text("const a = 0;\n\nlet x = 2;\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["show", str(path), "--repo", str(repo), "--text-file", str(buffer), "--format", "json"],
    )

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["directives"][0]["line_indexes"] == [0, 1]


def test_show_human_lists_every_line(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)

    result = runner.invoke(app, ["show", str(path), "--repo", str(repo)])

    assert result.exit_code == 0, result.stdout
    lines = result.stdout.splitlines()
    assert len(lines) == 3
    assert lines[2].startswith("3  80 | ")
    assert "let x = 1;" in lines[2]


def test_show_rejects_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", str(tmp_path / "nope.py"), "--repo", str(tmp_path)])
    assert result.exit_code != 0


def test_explain_json_reports_reasons(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)
    buffer = tmp_path / "buffer.js"
    buffer.write_text("const a = 0;\n\nlet x = 2;\n", encoding="utf-8")

    result = runner.invoke(
        app,
        ["explain", str(path), "--repo", str(repo), "--text-file", str(buffer), "--format", "json"],
    )

    assert result.exit_code == 0, result.stdout
    lines = json.loads(result.stdout)["lines"]
    assert [item["colored"] for item in lines] == [True, True, False]
    assert lines[2]["reason"] == "content_changed"
    assert lines[0]["danger_level"] == 80


def test_toggle_persists_and_disables_show(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)

    result = runner.invoke(app, ["toggle", "--repo", str(repo)])
    assert result.exit_code == 0
    assert "disabled" in result.stdout
    assert (repo / STATE_FILENAME).exists()

    shown = runner.invoke(app, ["show", str(path), "--repo", str(repo), "--format", "json"])
    payload = json.loads(shown.stdout)
    assert payload["meta"]["show_danger_colors"] is False
    assert payload["directives"] == []

    result = runner.invoke(app, ["toggle", "--repo", str(repo)])
    assert "enabled" in result.stdout


def test_toggle_rejects_missing_repo(tmp_path: Path) -> None:
    missing = tmp_path / "nope"

    result = runner.invoke(app, ["toggle", "--repo", str(missing)])

    assert result.exit_code == 2
    assert not isinstance(result.exception, FileNotFoundError)
    assert "Could not persist toggle" in result.output
    assert not missing.exists()


def test_rules_command_lists_parsed_rules(tmp_path: Path) -> None:
    (tmp_path / ".blame-hue.toml").write_text(
        'authors_danger_config = "a@x.com=10,b@x.com=95"\n', encoding="utf-8"
    )

    result = runner.invoke(app, ["rules", "--repo", str(tmp_path), "--format", "json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["rules"] == [
        {"author": "a@x.com", "danger_level": 10},
        {"author": "b@x.com", "danger_level": 95},
    ]
    assert payload["meta"]["config_source"] == str(tmp_path.resolve() / ".blame-hue.toml")


def test_rules_command_without_config(tmp_path: Path) -> None:
    result = runner.invoke(app, ["rules", "--repo", str(tmp_path)])
    assert result.exit_code == 0
    assert "No danger rules configured." in result.stdout


def test_config_command_json(tmp_path: Path) -> None:
    (tmp_path / ".blame-hue.toml").write_text(
        'authors_danger_config = "a@x.com=10"\ndebounce_ms = 300\n', encoding="utf-8"
    )

    result = runner.invoke(app, ["config", "--repo", str(tmp_path), "--format", "json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["debounce_ms"] == 300
    assert payload["rules"] == [{"author": "a@x.com", "danger_level": 10}]


def test_config_init_then_validate(tmp_path: Path) -> None:
    out = tmp_path / ".blame-hue.toml"

    result = runner.invoke(app, ["config-init", "--out", str(out)])
    assert result.exit_code == 0
    assert out.exists()

    again = runner.invoke(app, ["config-init", "--out", str(out)])
    assert again.exit_code != 0

    validated = runner.invoke(
        app, ["config-validate", "--repo", str(tmp_path), "--config", str(out), "--format", "json"]
    )
    assert validated.exit_code == 0
    assert json.loads(validated.stdout) == {"ok": True, "rule_count": 2, "source": str(out)}


def test_config_validate_rejects_malformed_entry(tmp_path: Path) -> None:
    config = tmp_path / ".blame-hue.toml"
    config.write_text('authors_danger_config = "a@x.com=high"\n', encoding="utf-8")

    result = runner.invoke(app, ["config-validate", "--repo", str(tmp_path)])

    assert result.exit_code != 0


def test_invalid_format_is_rejected(tmp_path: Path) -> None:
    result = runner.invoke(app, ["rules", "--repo", str(tmp_path), "--format", "xml"])
    assert result.exit_code != 0


def test_watch_renders_initial_refresh(tmp_path: Path) -> None:
    repo, path = _colored_repo(tmp_path)

    result = runner.invoke(
        app,
        ["watch", str(path), "--repo", str(repo), "--iterations", "2", "--interval", "0.05"],
    )

    assert result.exit_code == 0, result.stdout
    assert "let x = 1;" in result.stdout
