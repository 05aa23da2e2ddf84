from __future__ import annotations

import re
from dataclasses import dataclass

QUESTION_START_PATTERN = re.compile(
    r"^(who|what|when|where|why|how|does|do|is|are|can|should|could)\b", re.I
)
GIF_PREFIX_PATTERN = re.compile(r"^gif\s*:\s*(.+)$", re.I)
GIF_PHRASE_PATTERN = re.compile(r"\b(send|post)\s+a?\s*(gif|sticker)\s+of\s+(.+)", re.I)
STICKER_PREFIX_PATTERN = re.compile(r"^sticker\s*:\s*(.*)$", re.I)
MEMBER_INSIGHT_PATTERN = re.compile(r"(tell me something about\s+<@!?\d+>|about\s+(me|my profile))", re.I)
MARKET_STATS_PATTERN = re.compile(r"\b(oukii|magic eden|me)\b.*\b(stats|floor|listed|sales)\b", re.I)

ROUTE_GIF = "gif"
ROUTE_STICKER = "sticker"
ROUTE_MEMBER_INSIGHT = "member_insight"
ROUTE_MARKET_STATS = "market_stats"
ROUTE_CHAT = "chat"


@dataclass(frozen=True, slots=True)
class MessageRoute:
    kind: str
    query: str = ""
    sticker: bool = False


def is_question_like(text: str) -> bool:
    clean = (text or "").strip()
    if not clean:
        return False
    return clean.endswith("?") or bool(QUESTION_START_PATTERN.match(clean))


def extract_gif_request(text: str) -> MessageRoute | None:
    clean = (text or "").strip()
    m = GIF_PREFIX_PATTERN.match(clean)
    if m:
        return MessageRoute(kind=ROUTE_GIF, query=m.group(1).strip())
    m2 = GIF_PHRASE_PATTERN.search(clean)
    if m2:
        return MessageRoute(
            kind=ROUTE_GIF,
            query=m2.group(3).strip(),
            sticker=m2.group(2).lower() == "sticker",
        )
    return None


def classify_message_route(text: str) -> MessageRoute:
    clean = (text or "").strip()
    gif = extract_gif_request(clean)
    if gif is not None:
        return gif
    m = STICKER_PREFIX_PATTERN.match(clean)
    if m:
        return MessageRoute(kind=ROUTE_STICKER, query=m.group(1).strip(), sticker=True)
    if MEMBER_INSIGHT_PATTERN.search(clean):
        return MessageRoute(kind=ROUTE_MEMBER_INSIGHT)
    if MARKET_STATS_PATTERN.search(clean):
        return MessageRoute(kind=ROUTE_MARKET_STATS)
    return MessageRoute(kind=ROUTE_CHAT, query=clean)
