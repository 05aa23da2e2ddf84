from __future__ import annotations

import random
from typing import Any, Callable

import httpx

from config.defaults import TENOR_CLIENT_KEY
from config.defaults import TENOR_COUNTRY
from config.defaults import TENOR_SEARCH_URL

TENOR_TIMEOUT_SECONDS = 12.0
TENOR_RESULT_LIMIT = 20
MEDIA_FORMAT_PREFERENCE = ("gif", "tinygif", "mp4")


def pick_media_url(result: dict) -> str | None:
    media = result.get("media_formats") or {}
    for key in MEDIA_FORMAT_PREFERENCE:
        url = (media.get(key) or {}).get("url")
        if url:
            return str(url)
    return None


class TenorClient:
    """GIF and sticker search against Tenor v2. Every failure comes back as None."""

    def __init__(
        self,
        *,
        api_key: str,
        locale: str,
        http: httpx.AsyncClient | None = None,
        pick: Callable[[list[Any]], Any] = random.choice,
    ) -> None:
        self.api_key = api_key
        self.locale = locale
        self._http = http
        self._pick = pick

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _params(self, query: str, *, sticker: bool) -> dict[str, str]:
        params = {
            "key": self.api_key,
            "client_key": TENOR_CLIENT_KEY,
            "q": query,
            "limit": str(TENOR_RESULT_LIMIT),
            "locale": self.locale,
            "country": TENOR_COUNTRY,
        }
        if sticker:
            params["searchfilter"] = "sticker"
        return params

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        if self._http is not None:
            return await self._http.get(TENOR_SEARCH_URL, params=params, timeout=TENOR_TIMEOUT_SECONDS)
        async with httpx.AsyncClient(timeout=TENOR_TIMEOUT_SECONDS) as client:
            return await client.get(TENOR_SEARCH_URL, params=params)

    async def search(self, query: str, *, sticker: bool = False) -> str | None:
        if not self.enabled:
            return None
        try:
            response = await self._get(self._params(query, sticker=sticker))
            response.raise_for_status()
            results = (response.json() or {}).get("results") or []
        except httpx.HTTPStatusError as e:
            print(f"[Tenor] search failed status={e.response.status_code}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            print(f"[Tenor] search failed: {e}")
            return None

        if not results:
            return None
        return pick_media_url(self._pick(results))
