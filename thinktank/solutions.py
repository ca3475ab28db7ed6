"""Parse free-form agent output: generated solutions and summary sections."""

import re
from dataclasses import dataclass

_NUMBER_MARKER = re.compile(r"^\s*(?:\*\*)?\d+[.)]")
_FIELD = re.compile(r"^[\s#*-]*(?:\d+[.)]\s*)?(TITLE|SUMMARY|APPROACH|IMPACT)\s*:\s*(.*)$", re.IGNORECASE)
_BULLET = re.compile(r"^\s*[-*•]\s+(.*)$")

_FALLBACK_TITLE = "AI Generated Solution"
_DEFAULT_APPROACH = "Strategic implementation approach"
_DEFAULT_IMPACT = "Positive outcomes expected"
_TITLE_CHARS = 50
_FALLBACK_OBJECTIVE_CHARS = 200


@dataclass
class DraftSolution:
    title: str
    objective: str
    approach: str = _DEFAULT_APPROACH
    impact: str = _DEFAULT_IMPACT


def _field_blocks(text: str) -> list[dict[str, str]]:
    blocks: list[dict[str, str]] = []
    current: dict[str, str] = {}
    for line in text.splitlines():
        if _NUMBER_MARKER.match(line) and current:
            blocks.append(current)
            current = {}
        match = _FIELD.match(line.replace("**", ""))
        if match and match.group(2).strip():
            current.setdefault(match.group(1).lower(), match.group(2).strip())
    if current:
        blocks.append(current)
    return blocks


def parse_solutions(text: str, limit: int | None = None) -> list[DraftSolution]:
    """Solutions marked with TITLE/SUMMARY/APPROACH/IMPACT fields.

    A block needs at least a title and a summary. When nothing parses, the
    whole response becomes a single solution so the phase never ends empty.
    """
    drafts = [
        DraftSolution(
            title=block["title"],
            objective=block["summary"],
            approach=block.get("approach", _DEFAULT_APPROACH),
            impact=block.get("impact", _DEFAULT_IMPACT),
        )
        for block in _field_blocks(text)
        if block.get("title") and block.get("summary")
    ]
    if not drafts and text.strip():
        first_line = text.strip().splitlines()[0]
        drafts.append(
            DraftSolution(
                title=first_line[:_TITLE_CHARS].strip() or _FALLBACK_TITLE,
                objective=text.strip()[:_FALLBACK_OBJECTIVE_CHARS].strip(),
            )
        )
    return drafts[:limit] if limit else drafts


def extract_bullets(text: str, heading: str, stop_at: tuple[str, ...] = ()) -> list[str]:
    """Bullet items listed under ``heading``, up to the first ``stop_at`` heading."""
    items: list[str] = []
    inside = False
    for line in text.splitlines():
        lowered = line.lower()
        bullet = _BULLET.match(line)
        if not inside:
            if heading in lowered and not bullet:
                inside = True
            continue
        if not bullet and any(stop in lowered for stop in stop_at):
            break
        if bullet and bullet.group(1).strip():
            items.append(bullet.group(1).strip())
    return items


def summary_sections(text: str) -> tuple[list[str], list[str], list[str]]:
    """(key findings, recommendations, next steps) from a moderator summary."""
    return (
        extract_bullets(text, "key findings", ("recommendations", "next steps")),
        extract_bullets(text, "recommendations", ("next steps",)),
        extract_bullets(text, "next steps"),
    )
