from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class LocalContent:
    version: str = "interjections_v1"
    mst3k_quotes: list[str] = field(default_factory=list)
    pondering_lines: list[str] = field(default_factory=list)
    memory_templates: list[str] = field(default_factory=list)


def default_local_content() -> LocalContent:
    return LocalContent(
        version="interjections_v1",
        mst3k_quotes=[
            "Watch out for snakes!",
            "Push the button, Frank.",
            "Rowsdower!",
            "It stinks!",
            "Hi-keeba!",
            "Deep hurting.",
            "I'm Torgo. I take care of the place while the Master is away.",
            "Every time a bell rings, an angel gets his wings. And every time a bad movie plays, we suffer.",
            "Normal view... Normal view... NORMAL VIEW!",
            "Mitchell!",
        ],
        pondering_lines=[
            "Do you ever think about how every single one of us is technically a lighthouse for bacteria?",
            "If you swap every plank of a ship one at a time, is the last plank the one that makes it a different ship?",
            "Somewhere right now, someone is using a spoon for the very last time and has no idea.",
            "What's the most important thing you've forgotten today?",
            "Is a hot dog a sandwich, or is a sandwich a very flat hot dog?",
            "I keep wondering whether the moon finds us as interesting as we find it.",
        ],
        memory_templates=[
            "Remember when {speaker} said \"{content}\"? Good times.",
            "Still thinking about {speaker} saying \"{content}\"",
            "Flashback: {speaker}: \"{content}\"",
        ],
    )


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        text = str(item or "").strip()
        if text:
            out.append(text)
    return out


def load_local_content(path: str | Path | None) -> tuple[LocalContent, str | None]:
    """
    Returns (content, warning_message). warning_message is None on clean load.
    Missing or malformed sections fall back to the built-in lines.
    """
    defaults = default_local_content()
    if not path:
        return (defaults, "Interjection content path missing; using built-in lines.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Interjection content file not found at {p}; using built-in lines.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        return (defaults, f"Failed to read interjection content from {p}: {exc}; using built-in lines.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid interjection content format in {p}; using built-in lines.")

    content = LocalContent(
        version=str(payload.get("version") or defaults.version),
        mst3k_quotes=_as_list(payload.get("mst3k_quotes")) or defaults.mst3k_quotes,
        pondering_lines=_as_list(payload.get("pondering_lines")) or defaults.pondering_lines,
        memory_templates=_as_list(payload.get("memory_templates")) or defaults.memory_templates,
    )
    return (content, None)
