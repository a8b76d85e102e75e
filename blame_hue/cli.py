"""CLI entrypoint for blame-hue."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import typer

from blame_hue import __version__
from blame_hue.attribution import HeadTracker
from blame_hue.config import (
    CONFIG_FILENAMES,
    PYPROJECT_FILENAME,
    STATE_FILENAME,
    HueSettings,
    default_config_template,
    load_settings,
    parse_danger_rules,
)
from blame_hue.engine import CollectingSink, DecorationDirective
from blame_hue.output import (
    render_explain,
    render_human,
    render_json,
    serialize_decision,
)
from blame_hue.scheduler import RefreshScheduler
from blame_hue.session import HueSession

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="blame-hue",
    no_args_is_help=True,
    help="Color source lines by the danger level of their last git author.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Root command callback."""
    _ = version
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("show")
def show_command(
    path: Annotated[Path, typer.Argument(help="File to color.")],
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    text_file: Annotated[
        Path | None,
        typer.Option(help="Compare blame against this text instead of the file on disk."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Print a file with lines colored by author danger level."""
    output_format = _output_format_or_raise(format)
    settings = _load_settings_or_raise(repo, config_file)
    file_path = _existing_file_or_raise(path)
    text = _read_text(text_file or file_path)

    session = HueSession(settings)
    directives = asyncio.run(session.refresh(file_path, text, CollectingSink()))

    if output_format == "json":
        typer.echo(
            render_json(
                directives,
                file_path=str(file_path),
                head=session.attribution_cache.last_known_head,
                show_danger_colors=session.show_danger_colors,
            )
        )
        return
    typer.echo(render_human(text, directives))


@app.command("explain")
def explain_command(
    path: Annotated[Path, typer.Argument(help="File to explain.")],
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    text_file: Annotated[
        Path | None,
        typer.Option(help="Compare blame against this text instead of the file on disk."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Explain why each line is or is not colored."""
    output_format = _output_format_or_raise(format)
    settings = _load_settings_or_raise(repo, config_file)
    file_path = _existing_file_or_raise(path)
    text = _read_text(text_file or file_path)

    session = HueSession(settings)
    decisions = asyncio.run(session.explain(file_path, text))

    if output_format == "json":
        payload = {
            "file": str(file_path),
            "lines": [serialize_decision(item) for item in decisions],
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(render_explain(decisions))


@app.command("watch")
def watch_command(
    path: Annotated[Path, typer.Argument(help="File to watch.")],
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    interval: Annotated[float, typer.Option(help="Polling interval in seconds.")] = 0.25,
    iterations: Annotated[
        int | None,
        typer.Option(help="Stop after this many polls (default: run until interrupted)."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Re-color a file whenever it, HEAD or the configuration changes."""
    if interval <= 0:
        raise typer.BadParameter("interval must be > 0", param_hint="--interval")
    settings = _load_settings_or_raise(repo, config_file)
    file_path = _existing_file_or_raise(path)
    try:
        asyncio.run(
            _watch(
                file_path,
                repo=repo,
                config_file=config_file,
                settings=settings,
                interval=interval,
                iterations=iterations,
            )
        )
    except KeyboardInterrupt:
        raise typer.Exit(code=0) from None


@app.command("toggle")
def toggle_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Turn danger coloring on or off and remember the choice."""
    settings = _load_settings_or_raise(repo, config_file)
    try:
        enabled = asyncio.run(HueSession(settings).toggle(repo))
    except OSError as exc:
        raise typer.BadParameter(f"Could not persist toggle: {exc}", param_hint="--repo") from exc
    typer.echo(f"Danger colors {'enabled' if enabled else 'disabled'}.")


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List the configured author danger levels."""
    output_format = _output_format_or_raise(format)
    settings = _load_settings_or_raise(repo, config_file)
    rules = HueSession(settings).danger_config.rules

    if output_format == "json":
        payload = {
            "rules": [rule.to_dict() for rule in rules],
            "meta": {"config_source": settings.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    if not rules:
        typer.echo("No danger rules configured.")
        return
    lines = ["Danger rules:"]
    for rule in rules:
        lines.append(f"- {rule.author}: {rule.danger_level}")
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _output_format_or_raise(format)
    settings = _load_settings_or_raise(repo, config_file)
    payload = settings.to_dict()
    rules = parse_danger_rules(settings.authors_danger_config)
    payload["rules"] = [rule.to_dict() for rule in rules]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- show_danger_colors: {payload['show_danger_colors']}",
        f"- debounce_ms: {payload['debounce_ms']}",
        f"- authors_danger_config: {payload['authors_danger_config']!r}",
        f"- rules: {len(payload['rules'])}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".blame-hue.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".blame-hue.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file, including every danger rule entry."""
    output_format = _output_format_or_raise(format)
    settings = _load_settings_or_raise(repo, config_file)
    try:
        rules = parse_danger_rules(settings.authors_danger_config, strict=True)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.authors_danger_config") from exc

    payload = {"ok": True, "source": settings.source, "rule_count": len(rules)}
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- rule_count: {payload['rule_count']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


async def _watch(
    file_path: Path,
    *,
    repo: Path,
    config_file: Path | None,
    settings: HueSettings,
    interval: float,
    iterations: int | None,
) -> None:
    session = HueSession(settings)
    head_tracker = HeadTracker()

    async def refresh_view(target: Path) -> list[DecorationDirective]:
        text = _read_text(target)
        directives = await session.refresh(target, text, CollectingSink())
        typer.echo(render_human(text, directives))
        return directives

    scheduler: RefreshScheduler[Path] = RefreshScheduler(
        refresh_view, delay_seconds=settings.debounce_ms / 1000
    )
    scheduler.submit(file_path)

    file_stamp = _mtime(file_path)
    config_stamp = _config_stamp(repo, config_file)
    head = await head_tracker.current_head(file_path)
    polls = 0
    try:
        while iterations is None or polls < iterations:
            await asyncio.sleep(interval)
            polls += 1

            next_config_stamp = _config_stamp(repo, config_file)
            if next_config_stamp != config_stamp:
                config_stamp = next_config_stamp
                try:
                    session.apply_settings(load_settings(repo, config_path=config_file))
                except ValueError as exc:
                    logger.error("Keeping previous configuration: %s", exc)
                scheduler.trigger(file_path)

            next_file_stamp = _mtime(file_path)
            next_head = await head_tracker.current_head(file_path)
            if next_file_stamp != file_stamp or next_head != head:
                file_stamp = next_file_stamp
                head = next_head
                scheduler.trigger(file_path)

        await scheduler.wait_idle()
    finally:
        scheduler.cancel()


def _config_stamp(repo: Path, config_file: Path | None) -> tuple[float | None, ...]:
    repo = repo.resolve()
    if config_file is not None:
        candidates = [config_file if config_file.is_absolute() else repo / config_file]
    else:
        candidates = [repo / name for name in (*CONFIG_FILENAMES, PYPROJECT_FILENAME)]
    candidates.append(repo / STATE_FILENAME)
    return tuple(_mtime(candidate) for candidate in candidates)


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def _output_format_or_raise(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _load_settings_or_raise(repo: Path, config_file: Path | None = None) -> HueSettings:
    try:
        return load_settings(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _existing_file_or_raise(path: Path) -> Path:
    resolved = path.resolve()
    if not resolved.is_file():
        raise typer.BadParameter(f"File does not exist: {resolved}", param_hint="PATH")
    return resolved


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise typer.BadParameter(f"Could not read {path}: {exc}") from exc
