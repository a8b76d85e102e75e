"""Configuration loading and danger rules for blame-hue."""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".blame-hue.toml", "blame-hue.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("blame_hue", "blame-hue")
STATE_FILENAME = ".blame-hue-state.json"

AUTHORS_DELIMITER = ","
AUTHOR_LEVEL_DELIMITER = "="
MIN_DANGER_LEVEL = 0
MAX_DANGER_LEVEL = 100
DEFAULT_DEBOUNCE_MS = 700


@dataclass(frozen=True, slots=True)
class DangerRule:
    """Danger level configured for one author email."""

    author: str
    danger_level: int

    def to_dict(self) -> dict[str, Any]:
        return {"author": self.author, "danger_level": self.danger_level}


@dataclass(slots=True)
class HueSettings:
    """Runtime settings resolved from project files."""

    show_danger_colors: bool = True
    authors_danger_config: str = ""
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "show_danger_colors": self.show_danger_colors,
            "authors_danger_config": self.authors_danger_config,
            "debounce_ms": self.debounce_ms,
            "source": self.source,
        }


class DangerConfig:
    """The active danger rules, rebuilt as a whole from raw config text.

    ``generation`` changes on every rebuild attempt. Anything memoized
    against the rules must be dropped when it changes.
    """

    def __init__(self, rules: list[DangerRule] | None = None) -> None:
        self._rules: tuple[DangerRule, ...] = tuple(rules or ())
        self.generation = 0

    @property
    def rules(self) -> tuple[DangerRule, ...]:
        return self._rules

    def rebuild(self, raw_config: Any) -> bool:
        """Replace the rules from ``email=level,...`` text.

        On failure the previous rules stay in effect and ``False`` is returned.
        """
        self.generation += 1
        try:
            if not isinstance(raw_config, str):
                raise ValueError(
                    f"authors danger config must be a string, got {type(raw_config).__name__}"
                )
            rules = parse_danger_rules(raw_config)
        except ValueError as exc:
            logger.error("Could not parse configuration: %s", exc)
            return False
        self._rules = tuple(rules)
        logger.debug("Loaded %d danger rules", len(rules))
        return True

    def find_rule(self, email: str) -> DangerRule | None:
        for rule in self._rules:
            if rule.author == email:
                return rule
        return None


def parse_danger_rules(raw_config: str, *, strict: bool = False) -> list[DangerRule]:
    """Parse ``email1=level1,email2=level2`` into rules, in order.

    Malformed entries are logged and dropped, or raise ``ValueError`` when
    ``strict`` is set. Empty entries are ignored either way.
    """
    rules: list[DangerRule] = []
    for raw_entry in raw_config.split(AUTHORS_DELIMITER):
        if not raw_entry.strip():
            continue
        try:
            rules.append(_parse_danger_entry(raw_entry))
        except ValueError as exc:
            if strict:
                raise
            logger.warning("Skipping danger config entry %r: %s", raw_entry, exc)
    return rules


def _parse_danger_entry(raw_entry: str) -> DangerRule:
    author, sep, raw_level = raw_entry.partition(AUTHOR_LEVEL_DELIMITER)
    author = author.strip()
    if not sep:
        raise ValueError(f"expected '<email>{AUTHOR_LEVEL_DELIMITER}<level>'")
    if not author:
        raise ValueError("author email is empty")
    try:
        level = int(raw_level.strip())
    except ValueError as exc:
        raise ValueError(f"danger level is not an integer: {raw_level.strip()!r}") from exc
    if not MIN_DANGER_LEVEL <= level <= MAX_DANGER_LEVEL:
        raise ValueError(
            f"danger level must be between {MIN_DANGER_LEVEL} and {MAX_DANGER_LEVEL}, got {level}"
        )
    return DangerRule(author=author, danger_level=level)


def load_settings(repo: Path, config_path: Path | None = None) -> HueSettings:
    """Load settings from explicit path or repository-local files with precedence.

    A persisted toggle state in the repository overrides ``show_danger_colors``.
    """
    repo = repo.resolve()
    settings = _load_file_settings(repo, config_path)
    persisted = load_persisted_toggle(repo)
    if persisted is not None:
        settings.show_danger_colors = persisted
    return settings


def _load_file_settings(repo: Path, config_path: Path | None) -> HueSettings:
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return HueSettings()


def load_persisted_toggle(repo: Path) -> bool | None:
    """Return the persisted ``show_danger_colors`` value, if any."""
    state_path = repo / STATE_FILENAME
    if not state_path.exists():
        return None
    try:
        loaded = json.loads(state_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", state_path, exc)
        return None
    value = loaded.get("show_danger_colors") if isinstance(loaded, dict) else None
    if not isinstance(value, bool):
        logger.warning("Ignoring state file %s: show_danger_colors is not a boolean", state_path)
        return None
    return value


def persist_toggle(repo: Path, show_danger_colors: bool) -> Path:
    """Write the ``show_danger_colors`` toggle to the repository state file."""
    state_path = repo.resolve() / STATE_FILENAME
    state_path.write_text(
        json.dumps({"show_danger_colors": show_danger_colors}, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return state_path


def default_config_template() -> str:
    """Return a starter config template users can customize."""
    return "\n".join(
        [
            "show_danger_colors = true",
            "debounce_ms = 700",
            "",
            "# Comma-separated <email>=<level> pairs, level between 0 and 100.",
            'authors_danger_config = "intern@example.com=80,contractor@example.com=50"',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> HueSettings:
    debounce_ms = _as_int(mapping.get("debounce_ms", DEFAULT_DEBOUNCE_MS), "debounce_ms")
    if debounce_ms <= 0:
        raise ValueError("debounce_ms must be > 0")

    return HueSettings(
        show_danger_colors=_as_bool(mapping.get("show_danger_colors", True), "show_danger_colors"),
        authors_danger_config=_as_str(
            mapping.get("authors_danger_config", ""), "authors_danger_config"
        ),
        debounce_ms=debounce_ms,
        source=source,
    )


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"{field_name} must be a boolean")
    return raw
