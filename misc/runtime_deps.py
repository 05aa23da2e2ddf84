from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    allowed_channel: Callable[[Any], bool]
    format_timestamp: Callable

    # behaviour
    reply_chance: float
    reply_chance_question: float
    random_func: Callable[[], float]

    # knowledge + model
    knowledge_index: Any
    retrieval_settings: Any
    persona: Any
    llm: Any
    model_settings: Any

    # shared channel state
    activity: Any
    sticker_quota: Any

    # ad-hoc modules
    search_gif: Callable
    market_client: Any
    build_market_embed: Callable
    build_member_insight: Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    rebuild_knowledge_func: Callable
    idle_loop_func: Callable
    refresh_loop_func: Callable
    refresh_minutes: int
