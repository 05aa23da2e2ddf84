from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable

from config.defaults import DEFAULT_KB_SNIPPET_CHARS


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    send_chunked: Callable | None = None
    max_line_chars: int = DEFAULT_KB_SNIPPET_CHARS

    # Knowledge base
    knowledge_index: Any = None
    retrieval_settings: Any = None
    rebuild_knowledge_func: Callable | None = None
    format_timestamp: Callable | None = None

    # Ad-hoc modules
    market_client: Any = None
    build_market_embed: Callable | None = None


@dataclass(frozen=True)
class CommandGates:
    in_allowed_channel: Callable[[Any], bool] = _default_false
    user_is_owner: Callable[[Any], bool] = _default_false
