from __future__ import annotations

import json
import textwrap

import yaml
from typer.testing import CliRunner

from tourgen.cli import app


def _write_snapshot(path) -> None:
    files = [
        {"path": "README.md", "content": "# Demo\n\nA demo service.\n", "language": "markdown"},
        {"path": "src/index.ts", "content": "export const main = () => 1;\n", "language": "typescript"},
        {"path": "src/routes.ts", "content": "export const routes = [];\n", "language": "typescript"},
        {"path": "lib/util.ts", "content": "export const noop = () => {};\n", "language": "typescript"},
    ]
    path.write_text(json.dumps({"output": {"files": files}}), encoding="utf-8")


def _write_config(path, logs_dir) -> None:
    path.write_text(
        textwrap.dedent(
            f"""
            project:
              name: Demo
            pipeline:
              files_per_chunk: 2
              window_delay: 0
            models:
              default: gpt-4o-mini-offline
            paths:
              logs: "{logs_dir.as_posix()}"
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )


def test_init_writes_defaults_and_refuses_overwrite(tmp_path) -> None:
    config_path = tmp_path / "tourgen.yaml"
    runner = CliRunner()

    first = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert first.exit_code == 0, first.output
    assert yaml.safe_load(config_path.read_text(encoding="utf-8"))["pipeline"]["files_per_chunk"] == 5

    second = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert second.exit_code == 1
    assert "already exists" in second.output

    forced = runner.invoke(app, ["init", "--config", str(config_path), "--force"], catch_exceptions=False)
    assert forced.exit_code == 0, forced.output


def test_generate_writes_tour_with_offline_client(tmp_path) -> None:
    snapshot_path = tmp_path / "demo.json"
    config_path = tmp_path / "tourgen.yaml"
    logs_dir = tmp_path / "logs"
    out_dir = tmp_path / "tours"
    _write_snapshot(snapshot_path)
    _write_config(config_path, logs_dir)

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "generate",
            str(snapshot_path),
            "--config",
            str(config_path),
            "--title",
            "Demo Tour",
            "--output",
            str(out_dir),
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "offline stub client" in result.output
    assert "Tour generation complete!" in result.output

    tour = json.loads((out_dir / "demo-tour.tour").read_text(encoding="utf-8"))
    assert tour["title"] == "Demo Tour"
    files = [step["file"] for step in tour["steps"]]
    assert files[0] == "README.md"
    assert files[1] == "src/index.ts"
    assert set(files[1:]) == {"README.md", "src/index.ts", "src/routes.ts", "lib/util.ts"}

    labels = {json.loads(path.read_text(encoding="utf-8"))["label"] for path in (logs_dir / "exchanges").glob("*.json")}
    assert labels == {"overview", "chunk-1-of-2", "chunk-2-of-2"}


def test_generate_reports_unreadable_snapshot(tmp_path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["generate", str(tmp_path / "missing.json"), "--no-use-remote"],
        catch_exceptions=False,
    )

    assert result.exit_code == 1
    assert "Cannot read snapshot" in result.output


def test_status_prints_resolved_settings(tmp_path) -> None:
    config_path = tmp_path / "tourgen.yaml"
    _write_config(config_path, tmp_path / "logs")

    result = CliRunner().invoke(app, ["status", "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Model: gpt-4o-mini-offline" in result.output
    assert "2 files per chunk" in result.output
    assert "trim policy: prefix" in result.output


def test_status_rejects_invalid_settings(tmp_path) -> None:
    config_path = tmp_path / "tourgen.yaml"
    config_path.write_text("pipeline:\n  trim_policy: random\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["status", "--config", str(config_path)], catch_exceptions=False)

    assert result.exit_code == 1
    assert "trim_policy" in result.output
