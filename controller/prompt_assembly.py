from __future__ import annotations

import math

from config.defaults import BUDGET_MAX_TRIM_PASSES
from config.defaults import BUDGET_MIN_KEEP_CHARS
from config.defaults import BUDGET_TRIM_CHUNK_CHARS
from config.defaults import CHARS_PER_TOKEN
from config.defaults import NOTES_MARKER
from config.defaults import NOTES_PLACEHOLDER

SLOT_CONTENT = "content"
SLOT_AUX = "aux"
SLOT_SYSTEM = "system"
# Trim order; the primary system prompt goes last.
TRIM_PRIORITY = (SLOT_CONTENT, SLOT_AUX, SLOT_SYSTEM)


def build_chat_messages(
    *,
    system_prompt: str,
    user_prompt: str,
    directive: str | None = None,
) -> list[dict]:
    msgs = [
        {"role": "system", "content": system_prompt or ""},
        {"role": "user", "content": user_prompt or ""},
    ]
    if directive:
        msgs.append({"role": "system", "content": directive})
    return msgs


def language_directive(language: str) -> str:
    return f"Keep replies concise. Language: {language or 'en'}."


def approx_tokens(text: str | None) -> int:
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def total_approx_tokens(messages: list[dict]) -> int:
    return sum(approx_tokens(m.get("content")) for m in messages)


def message_slot(index: int, message: dict) -> str:
    role = str(message.get("role") or "")
    if role == "system" and index == 0:
        return SLOT_SYSTEM
    if role == "system":
        return SLOT_AUX
    return SLOT_CONTENT


def _primary_content_index(messages: list[dict]) -> int | None:
    for i, m in enumerate(messages):
        if message_slot(i, m) == SLOT_CONTENT and NOTES_MARKER in (m.get("content") or ""):
            return i
    for i, m in enumerate(messages):
        if message_slot(i, m) == SLOT_CONTENT:
            return i
    return None


def collapse_notes(content: str) -> str:
    head, sep, _tail = content.partition(NOTES_MARKER)
    if not sep:
        return content
    return f"{head}{NOTES_MARKER}\n{NOTES_PLACEHOLDER}"


def budget_prompt_messages(
    messages: list[dict],
    max_input_tokens: int,
    *,
    chunk_chars: int = BUDGET_TRIM_CHUNK_CHARS,
    min_keep_chars: int = BUDGET_MIN_KEEP_CHARS,
    max_passes: int = BUDGET_MAX_TRIM_PASSES,
) -> list[dict]:
    """
    Trim a prompt so its approximate token count fits max_input_tokens.

    Each pass cuts one chunk off the end of the largest message in the
    highest-priority slot that still has room above min_keep_chars. When the
    passes run out (or nothing is trimmable) and the prompt is still too big,
    the notes section of the content message is collapsed to a placeholder.

    Best effort: returns a trimmed copy and never raises, even when the
    budget cannot be met. The input list is left untouched.
    """
    out = [dict(m, content=str(m.get("content") or "")) for m in (messages or [])]
    budget = max(0, int(max_input_tokens))
    chunk = max(1, int(chunk_chars))
    floor = max(0, int(min_keep_chars))

    passes = 0
    while total_approx_tokens(out) > budget and passes < max(0, int(max_passes)):
        target = _pick_trim_target(out, floor)
        if target is None:
            break
        content = out[target]["content"]
        over_chars = (total_approx_tokens(out) - budget) * CHARS_PER_TOKEN
        step = min(chunk, max(1, over_chars), len(content) - floor)
        out[target]["content"] = content[: len(content) - step]
        passes += 1

    if total_approx_tokens(out) > budget:
        idx = _primary_content_index(out)
        if idx is not None:
            collapsed = collapse_notes(out[idx]["content"])
            if len(collapsed) < len(out[idx]["content"]):
                out[idx]["content"] = collapsed
        if total_approx_tokens(out) > budget:
            print(f"[AI] prompt still over budget tokens={total_approx_tokens(out)} max={budget}")

    return out


def _pick_trim_target(messages: list[dict], floor: int) -> int | None:
    for slot in TRIM_PRIORITY:
        best: int | None = None
        best_len = floor
        for i, m in enumerate(messages):
            if message_slot(i, m) != slot:
                continue
            size = len(m["content"])
            if size > best_len:
                best = i
                best_len = size
        if best is not None:
            return best
    return None
