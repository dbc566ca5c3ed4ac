from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import unquote


@dataclass
class StremioID:
    base: str
    season: Optional[str]
    episode: Optional[str]

    @property
    def imdb_numeric(self) -> Optional[str]:
        token = (self.base or "").lower()
        if not token.startswith("tt"):
            return None
        token = token[2:].lstrip("0")
        return token or None


def parse_stremio_id(raw_id: str) -> StremioID:
    """Parse Stremio IDs that may be URL-encoded once or twice.

    - tt0369179                   (movie)
    - tt0369179:1:2               (series S01E02)
    - tt0369179%3A1%3A2           (encoded once)
    - tt0369179%253A1%253A2       (encoded twice)
    """
    s = raw_id or ""
    for _ in range(2):
        decoded = unquote(s)
        if decoded == s:
            break
        s = decoded
    # Stremio may append extra args after a slash (videoHash=..., filename=...)
    s = s.split("/", 1)[0]

    parts = s.split(":")
    base = parts[0] if parts else s
    season = parts[1] if len(parts) > 1 and parts[1] else None
    episode = parts[2] if len(parts) > 2 and parts[2] else None
    return StremioID(base=base, season=season, episode=episode)


def build_search_params(media_type: str, raw_id: str) -> Optional[Dict[str, str]]:
    """Base catalog search parameters for a Stremio item, language excluded."""
    tokens = parse_stremio_id(raw_id)
    imdb = tokens.imdb_numeric
    if not imdb:
        return None
    params = {"imdbid": imdb}
    if media_type == "series" and tokens.season and tokens.episode:
        params["season"] = tokens.season
        params["episode"] = tokens.episode
    return params
