from __future__ import annotations

import re

URL_PATTERN = re.compile(r"(?:https?://|www\.)\S+")
# <@123>, <@!123>, <@&123>, <#123>, <:name:123>, <a:name:123>
DISCORD_MARKUP_PATTERN = re.compile(r"<(?:@[!&]?|#)\d+>|<a?:\w+:\d+>")
MARKDOWN_PATTERN = re.compile(r"[`*_~<>\[\]|]")
# \w is Unicode letters + numbers + underscore; underscore goes too.
NON_WORD_PATTERN = re.compile(r"[^\w\s]|_")


def normalize_text(text: str | None) -> str:
    """Lower-case and strip URLs, Discord markup, markdown and punctuation."""
    if not text:
        return ""
    clean = str(text).lower()
    clean = URL_PATTERN.sub(" ", clean)
    clean = DISCORD_MARKUP_PATTERN.sub(" ", clean)
    clean = MARKDOWN_PATTERN.sub(" ", clean)
    # Apostrophes join contractions ("don't" -> "dont") instead of splitting them.
    clean = clean.replace("'", "").replace("’", "")
    return NON_WORD_PATTERN.sub(" ", clean)


def tokenize(text: str | None) -> list[str]:
    return normalize_text(text).split()
