from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


DEFAULT_SYSTEM_PROMPT = """
You are OUKII, a cheeky, kind, UK-based Discord companion.
Keep replies short (max ~90 words), UK English, never @here/@everyone, GMT/BST.
If you're not sure, say so briefly. Use knowledge snippets if provided.
""".strip()

DEFAULT_FALLBACK_STARTERS = [
    "What's everyone working on today?",
    "Tea or coffee this afternoon? ☕",
    "What's one small win you had this week?",
    "Drop a tune you've had on repeat lately!",
    "What's your go-to productivity hack, then?",
]

DEFAULT_REPLY_RULES = "Reply in under 90 words, friendly and cheeky (but kind). Do not mention @here or @everyone."

DEFAULT_STARTER_PROMPT = "Write one upbeat icebreaker for a Discord server. No hashtags. Keep it under 20 words."


@dataclass(slots=True)
class Persona:
    version: str = "persona_v1"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    reply_rules: str = DEFAULT_REPLY_RULES
    starter_prompt: str = DEFAULT_STARTER_PROMPT
    fallback_starters: list[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_STARTERS))


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    out: list[str] = []
    for item in value:
        text = str(item or "").strip()
        if text:
            out.append(text)
    return out


def _as_text(value: Any) -> str:
    return str(value or "").strip()


def load_persona(path: str | Path | None) -> tuple[Persona, str | None]:
    """
    Returns (persona, warning_message). warning_message is None on clean load.
    """
    defaults = Persona()
    if not path:
        return (defaults, "Persona path missing; using built-in defaults.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"Persona file not found at {p}; using built-in defaults.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except Exception as exc:
        return (defaults, f"Failed to read persona from {p}: {exc}; using built-in defaults.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid persona format in {p}; using built-in defaults.")

    persona = Persona(
        version=_as_text(payload.get("version")) or defaults.version,
        system_prompt=_as_text(payload.get("system_prompt")) or defaults.system_prompt,
        reply_rules=_as_text(payload.get("reply_rules")) or defaults.reply_rules,
        starter_prompt=_as_text(payload.get("starter_prompt")) or defaults.starter_prompt,
        fallback_starters=_as_list(payload.get("fallback_starters")) or defaults.fallback_starters,
    )
    return (persona, None)
