from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Dict, List, Mapping, Optional

import httpx

from ..encoding import normalize
from ..errors import DecodeError, DecompressionError, NetworkError, RateLimitExceeded
from ..models import Cue, SearchCandidate
from ..scheduler import RequestScheduler
from ..srt import parse_srt

log = logging.getLogger("dual_subtitles.sources.opensubtitles")

API_BASE = "https://rest.opensubtitles.org"
DEFAULT_USER_AGENT = "TemporaryUserAgent"
ALLOWED_FORMATS = frozenset({"srt", "vtt", "sub", "ass"})
SEARCH_TIMEOUT = 10.0
DOWNLOAD_TIMEOUT = 15.0

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _to_int(value: object) -> int:
    match = _LEADING_INT_RE.match(str(value)) if value is not None else None
    return int(match.group(1)) if match else 0


def _to_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def build_search_url(params: Mapping[str, object], base_url: str = API_BASE) -> str:
    """Build a legacy REST search URL.

    Parameters are path segments ``key-value`` in alphabetical key order,
    e.g. ``/search/episode-2/imdbid-369179/season-1/sublanguageid-eng``.
    """
    segments = []
    for key in sorted(params):
        value = params[key]
        if value is None or str(value) == "":
            continue
        segments.append(f"{key}-{urllib.parse.quote(str(value).lower(), safe='')}")
    return f"{base_url.rstrip('/')}/search/" + "/".join(segments)


def _candidate_from_entry(entry: Dict) -> SearchCandidate:
    return SearchCandidate(
        id=str(entry.get("IDSubtitleFile") or ""),
        download_url=str(entry.get("SubDownloadLink") or ""),
        language_code=str(entry.get("SubLanguageID") or ""),
        format=str(entry.get("SubFormat") or "").lower(),
        release_name=entry.get("MovieReleaseName") or entry.get("MovieName") or "Unknown",
        rating=_to_float(entry.get("SubRating")),
        download_count=_to_int(entry.get("SubDownloadsCnt")),
        language_name=str(entry.get("LanguageName") or ""),
    )


def rank_entries(payload: object) -> List[SearchCandidate]:
    """Filter raw search hits to usable formats and order by downloads."""
    if not isinstance(payload, list):
        return []
    usable = [
        entry
        for entry in payload
        if isinstance(entry, dict)
        and entry.get("SubDownloadLink")
        and str(entry.get("SubFormat") or "").lower() in ALLOWED_FORMATS
    ]
    candidates = [_candidate_from_entry(entry) for entry in usable]
    # sorted() is stable, so equal counts keep the catalog's order
    return sorted(candidates, key=lambda c: c.download_count, reverse=True)


class OpenSubtitlesClient:
    """Search-and-rank plus download-and-decode against the OpenSubtitles REST API.

    Searches go through the shared RequestScheduler so both languages of a
    merge compete for the same per-minute quota. Downloads are not rate
    limited.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        scheduler: RequestScheduler,
        base_url: str = API_BASE,
        user_agent: str = DEFAULT_USER_AGENT,
        search_timeout: float = SEARCH_TIMEOUT,
        download_timeout: float = DOWNLOAD_TIMEOUT,
    ) -> None:
        self._http = http
        self._scheduler = scheduler
        self._base_url = base_url
        self._user_agent = user_agent
        self._search_timeout = search_timeout
        self._download_timeout = download_timeout

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self._user_agent}

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        try:
            response = await self._http.get(url, headers=self._headers(), timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise RateLimitExceeded(f"Catalog rate limit exceeded for {url}") from exc
            raise NetworkError(f"HTTP {exc.response.status_code} for {url}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {url} failed: {exc}") from exc
        return response

    async def search_and_rank(self, language: str, base_params: Mapping[str, object]) -> List[SearchCandidate]:
        """Return usable candidates for ``language`` sorted by download count.

        Any failure, including an empty or malformed response, yields [].
        """
        params = dict(base_params)
        params["sublanguageid"] = language
        url = build_search_url(params, self._base_url)
        log.info("Searching %s subtitles at: %s", language, url)
        try:
            response = await self._scheduler.schedule(lambda: self._get(url, self._search_timeout))
        except RateLimitExceeded:
            log.warning("Rate limit exceeded from OpenSubtitles API while fetching %s", language)
            return []
        except NetworkError as exc:
            log.warning("Error fetching %s subtitles: %s", language, exc)
            return []

        try:
            payload = response.json()
        except ValueError:
            log.warning("OpenSubtitles returned non-JSON search response for %s", language)
            return []
        if not isinstance(payload, list) or not payload:
            log.info("No %s subtitles found or invalid API response.", language)
            return []

        candidates = rank_entries(payload)
        if not candidates:
            log.info("No suitable subtitle format found for %s.", language)
            return []
        log.info("Found %d valid subtitles for %s, sorted by downloads.", len(candidates), language)
        return candidates

    async def download(self, url: str) -> bytes:
        log.info("Fetching subtitle content from: %s", url)
        response = await self._get(url, self._download_timeout)
        return response.content

    async def fetch_and_decode(self, candidate: SearchCandidate) -> Optional[List[Cue]]:
        """Download, decode and parse one candidate; None when there is no content."""
        url = candidate.download_url
        try:
            raw = await self.download(url)
            text = normalize(raw, url)
        except NetworkError as exc:
            log.warning("Error fetching subtitle content from %s: %s", url, exc)
            return None
        except DecompressionError as exc:
            log.error("Error decompressing subtitle %s: %s", url, exc)
            return None
        except DecodeError as exc:
            log.error("Decoding failed for %s: %s", url, exc)
            return None
        cues = parse_srt(text)
        log.info("Parsed %d cues from subtitle %s (id=%s)", len(cues), url, candidate.id)
        return cues


__all__ = [
    "ALLOWED_FORMATS",
    "OpenSubtitlesClient",
    "build_search_url",
    "rank_entries",
]
