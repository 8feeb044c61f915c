"""CLI commands for generating code tours from flattened repositories."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, PipelineSettings, default_config, load_config, write_config
from .errors import ConfigError, TourGenerationCancelled, TourGenerationError
from .models import ChatCompletionsClient, LLMClient, OfflineClient
from .pipeline import TourPipeline
from .progress import CallbackProgress, ProgressEvent
from .snapshot import load_snapshot
from .tour import TourGenerationOptions, save_tour

APP_HELP = "Generate narrative code tours from a flattened repository snapshot."

app = typer.Typer(help=APP_HELP)


def _load(config: Optional[str]) -> Dict[str, Any]:
    """Load configuration, treating an absent default file as 'use defaults'."""
    if config is None:
        default_path = Path(DEFAULT_CONFIG_NAME)
        config_path: Optional[Path] = default_path if default_path.exists() else None
    else:
        config_path = Path(config)
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _settings(config: Dict[str, Any]) -> PipelineSettings:
    try:
        return PipelineSettings.from_config(config)
    except ConfigError as error:
        typer.echo(f"Invalid configuration: {error}")
        raise typer.Exit(code=1) from error


def _configure_logging(config: Dict[str, Any], verbose: bool) -> None:
    logging_cfg = config.get("logging") or {}
    level_name = "DEBUG" if verbose else str(logging_cfg.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_client(config: Dict[str, Any], *, use_remote: bool) -> LLMClient:
    """Select either the HTTP chat completions client or the offline stub."""
    models_cfg = config.get("models") or {}
    model_name = str(models_cfg.get("default", "gpt-4o-mini"))
    offline_model = model_name.lower() == "offline" or model_name.lower().endswith("-offline")

    if use_remote and not offline_model:
        typer.echo(f"Using chat completions client ({model_name}).")
        client_kwargs: Dict[str, Any] = {}
        timeout_value = models_cfg.get("timeout")
        if isinstance(timeout_value, (int, float)) and timeout_value > 0:
            client_kwargs["timeout"] = float(timeout_value)
        max_attempts_value = models_cfg.get("max_attempts")
        if isinstance(max_attempts_value, int) and max_attempts_value > 0:
            client_kwargs["max_attempts"] = max_attempts_value
        retry_delay_value = models_cfg.get("retry_delay")
        if isinstance(retry_delay_value, (int, float)) and retry_delay_value >= 0:
            client_kwargs["retry_delay"] = float(retry_delay_value)
        base_url_value = models_cfg.get("base_url")
        if isinstance(base_url_value, str) and base_url_value.strip():
            client_kwargs["base_url"] = base_url_value.strip()
        api_key_value = models_cfg.get("api_key")
        if isinstance(api_key_value, str) and api_key_value.strip():
            client_kwargs["api_key"] = api_key_value.strip()
        try:
            return ChatCompletionsClient(model=model_name, **client_kwargs)
        except ValueError as error:
            if "api key" in str(error).lower():
                typer.echo(
                    "No API key given. Set TOURGEN_API_KEY or OPENAI_API_KEY, "
                    "or re-run with --no-use-remote to use the offline stub."
                )
            else:
                typer.echo(f"Failed to initialise completion client: {error}")
            raise typer.Exit(code=1)

    if use_remote and offline_model:
        typer.echo(f"Model '{model_name}' is offline-only; using offline stub client.")
    else:
        typer.echo("Using offline stub client.")
    return OfflineClient()


def _resolve_logs_root(config: Dict[str, Any]) -> Optional[Path]:
    paths_cfg = config.get("paths") or {}
    value = paths_cfg.get("logs")
    if isinstance(value, str) and value.strip():
        return Path(value.strip())
    return None


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path of the configuration file to create.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path, default_config())
    typer.echo(f"Wrote default configuration to {config_path}")


@app.command()
def generate(
    snapshot: Path = typer.Argument(..., help="Flattened repository JSON (files, contents, line counts)."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the configuration file (default: ./{DEFAULT_CONFIG_NAME} when present).",
    ),
    title: Optional[str] = typer.Option(None, "--title", help="Tour title."),
    description: Optional[str] = typer.Option(None, "--description", help="Tour description."),
    focus: List[str] = typer.Option([], "--focus", help="Focus area to emphasise (repeatable)."),
    max_steps: Optional[int] = typer.Option(None, "--max-steps", min=1, help="Cap on total tour steps."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for the .tour file."),
    use_remote: bool = typer.Option(
        True,
        "--use-remote/--no-use-remote",
        help="Call the completion API instead of the offline stub (requires API key).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate a tour from SNAPSHOT and write it as a .tour file."""
    config_data = _load(config)
    _configure_logging(config_data, verbose)
    settings = _settings(config_data)

    try:
        repository = load_snapshot(snapshot)
    except TourGenerationError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error

    client = _build_client(config_data, use_remote=use_remote)
    project_cfg = config_data.get("project") or {}
    options = TourGenerationOptions(
        title=title,
        description=description or (project_cfg.get("description") or None),
        focus_areas=tuple(focus),
        max_steps=max_steps,
        project_name=project_cfg.get("name") or snapshot.stem,
    )

    def _report(event: ProgressEvent) -> None:
        typer.echo(f"[{event.increment:>5.1f}] {event.message}")

    pipeline = TourPipeline(client, settings, logs_root=_resolve_logs_root(config_data))
    try:
        tour = asyncio.run(pipeline.build(repository, options, progress=CallbackProgress(_report)))
    except TourGenerationCancelled:
        typer.echo("Tour generation cancelled.")
        raise typer.Exit(code=130)
    except KeyboardInterrupt:
        typer.echo("Tour generation cancelled.")
        raise typer.Exit(code=130)
    except TourGenerationError as error:
        typer.echo(f"Failed to generate tour: {error}")
        raise typer.Exit(code=1) from error

    paths_cfg = config_data.get("paths") or {}
    directory = output or Path(str(paths_cfg.get("tours") or ".tours"))
    tour_path = save_tour(tour, directory)
    typer.echo(f"Tour '{tour.title}' with {len(tour.steps)} steps written to {tour_path}")


@app.command()
def status(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the configuration file.",
    )
) -> None:
    """Validate configuration and print the resolved settings."""
    config_data = _load(config)
    settings = _settings(config_data)
    models_cfg = config_data.get("models") or {}

    typer.echo(f"Model: {models_cfg.get('default', 'unknown')}")
    typer.echo(
        f"Checkpoints: target {settings.target_steps}, max {settings.max_steps} "
        f"(trim policy: {settings.trim_policy})"
    )
    typer.echo(
        f"Chunking: {settings.files_per_chunk} files per chunk, {settings.lines_per_file} preview lines, "
        f"{settings.parallel_chunks} in parallel, {settings.window_delay:g}s between windows"
    )
    logs_root = _resolve_logs_root(config_data)
    typer.echo(f"Exchange logs: {logs_root if logs_root else 'disabled'}")


if __name__ == "__main__":
    app()
