"""Parser for ``git blame -e -t`` output."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

UNCOMMITTED_EMAIL = "not.committed.yet"


@dataclass(frozen=True, slots=True)
class LineAttribution:
    """Authorship of one line in the working file, as reported by blame."""

    email: str
    line_index: int
    line_content: str
    commit_timestamp: datetime

    @property
    def is_uncommitted(self) -> bool:
        return self.email == UNCOMMITTED_EMAIL


def parse_blame_output(blame_text: str) -> list[LineAttribution]:
    """Parse blame text into attributions, dropping lines that do not parse.

    Output order follows input order. A malformed line is logged and skipped,
    so the result may be shorter than the input.
    """
    attributions: list[LineAttribution] = []
    for raw_line in blame_text.split("\n"):
        if not raw_line.strip():
            logger.debug("Skipping blank blame line")
            continue
        try:
            attributions.append(parse_blame_line(raw_line))
        except ValueError as exc:
            logger.warning("Failed to parse blame line %r: %s", raw_line, exc)
    return attributions


def parse_blame_line(raw_line: str) -> LineAttribution:
    """Parse one ``<hash> (<email> <ts> <tz> <lineno>) <content>`` line.

    Raises ``ValueError`` when the line does not have that shape.
    """
    _, sep, after_open = raw_line.partition("<")
    if not sep:
        raise ValueError("missing '<' before author email")
    email, sep, rest = after_open.partition(">")
    if not sep:
        raise ValueError("missing '>' after author email")

    meta, sep, content = rest.partition(")")
    if not sep:
        raise ValueError("missing ')' after line metadata")

    meta_parts = meta.split()
    if not meta_parts:
        raise ValueError("empty line metadata")

    timestamp = _parse_int(meta_parts[0], "timestamp")
    line_number = _parse_int(meta_parts[-1], "line number")
    if line_number < 1:
        raise ValueError(f"line number must be >= 1, got {line_number}")

    try:
        commit_timestamp = datetime.fromtimestamp(timestamp, tz=UTC)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp out of range: {timestamp}") from exc

    return LineAttribution(
        email=email,
        line_index=line_number - 1,
        line_content=content.strip(),
        commit_timestamp=commit_timestamp,
    )


def _parse_int(token: str, field_name: str) -> int:
    try:
        return int(token)
    except ValueError as exc:
        raise ValueError(f"{field_name} is not an integer: {token!r}") from exc
