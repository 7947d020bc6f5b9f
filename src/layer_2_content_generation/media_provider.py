"""
Music catalog access: search, playable URL resolution, lyrics and download.
URL freshness is tracked by the director, not by the provider.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from src.utils.errors import MediaDownloadError

_LRC_TIMESTAMP_RE = re.compile(r"\[\d{2}:\d{2}(\.\d+)?\]")


@dataclass(frozen=True)
class Track:
    id: str
    name: str
    artist: List[str] = field(default_factory=list)
    album: str = ""
    pic_id: str = ""
    lyric_id: str = ""
    source: str = "netease"


def parse_lrc_to_text(lrc: str) -> str:
    """Strip LRC timestamps, keeping only non-empty lyric lines"""
    lines = (_LRC_TIMESTAMP_RE.sub("", line).strip() for line in lrc.split("\n"))
    return "\n".join(line for line in lines if line)


class BaseMediaProvider(ABC):
    """
    Abstract media provider.
    Subclasses implement blocking calls; the async wrappers run them in the
    default executor so the event loop stays free.
    """

    @abstractmethod
    def _search(self, query: str, count: int) -> List[Track]:
        pass

    @abstractmethod
    def _resolve_url(self, track_id: str, bitrate: int, source: str) -> Optional[str]:
        pass

    @abstractmethod
    def _lyrics(self, lyric_id: str, source: str) -> Optional[str]:
        pass

    @abstractmethod
    def _download(self, url: str) -> bytes:
        pass

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def search(self, query: str, count: int = 10) -> List[Track]:
        return await self._run(self._search, query, count)

    async def resolve_url(self, track_id: str, bitrate: int = 320, source: str = "netease") -> Optional[str]:
        return await self._run(self._resolve_url, track_id, bitrate, source)

    async def lyrics(self, lyric_id: str, source: str = "netease") -> Optional[str]:
        return await self._run(self._lyrics, lyric_id, source)

    async def download(self, url: str) -> bytes:
        return await self._run(self._download, url)


class GDStudioMusicProvider(BaseMediaProvider):
    """GD Studio music API (https://music.gdstudio.xyz). Rate limit: 50 requests / 5 minutes."""

    def __init__(
        self,
        api_base: str = "https://music-api.gdstudio.xyz/api.php",
        source: str = "netease",
        timeout: float = 15.0
    ):
        self.api_base = api_base
        self.source = source
        self.timeout = timeout
        self.session = requests.Session()

    def _get_json(self, params: dict):
        r = self.session.get(self.api_base, params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _search(self, query: str, count: int) -> List[Track]:
        try:
            data = self._get_json({"types": "search", "source": self.source, "name": query, "count": count, "pages": 1})
        except (requests.RequestException, ValueError) as e:
            print(f"⚠️ [Music] Search error for '{query}': {e}")
            return []

        if not isinstance(data, list):
            print(f"⚠️ [Music] Unexpected search response format: {str(data)[:100]}")
            return []

        return [
            Track(
                id=str(item.get("id", "")),
                name=item.get("name", ""),
                artist=list(item.get("artist") or []),
                album=item.get("album", ""),
                pic_id=str(item.get("pic_id", "")),
                lyric_id=str(item.get("lyric_id", "")),
                source=item.get("source", self.source),
            )
            for item in data if item.get("id")
        ]

    def _resolve_url(self, track_id: str, bitrate: int, source: str) -> Optional[str]:
        try:
            data = self._get_json({"types": "url", "source": source, "id": track_id, "br": bitrate})
        except (requests.RequestException, ValueError) as e:
            print(f"⚠️ [Music] URL error for track {track_id}: {e}")
            return None
        return (data or {}).get("url") or None

    def _lyrics(self, lyric_id: str, source: str) -> Optional[str]:
        if not lyric_id:
            return None
        try:
            data = self._get_json({"types": "lyric", "source": source, "id": lyric_id})
        except (requests.RequestException, ValueError) as e:
            print(f"⚠️ [Music] Lyric error for {lyric_id}: {e}")
            return None
        return (data or {}).get("lyric") or None

    def _download(self, url: str) -> bytes:
        try:
            r = self.session.get(url, timeout=self.timeout * 4)
            r.raise_for_status()
        except requests.RequestException as e:
            raise MediaDownloadError(f"Download failed: {e}") from e
        return r.content


def create_media_provider(provider: str = "gdstudio", **kwargs) -> BaseMediaProvider:
    provider = provider.lower()
    if provider == "gdstudio":
        return GDStudioMusicProvider(**kwargs)
    raise ValueError(f"Unsupported media provider: {provider}. Available: gdstudio")
