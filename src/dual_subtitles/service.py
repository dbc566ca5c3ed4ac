from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from .cache import TTLCache
from .merge import DEFAULT_THRESHOLD_MS, merge_cues
from .metadata import build_search_params
from .models import STATUS_INSUFFICIENT, STATUS_OK, Cue, MergeOutcome, SearchCandidate
from .sources.opensubtitles import OpenSubtitlesClient

log = logging.getLogger("dual_subtitles.service")

Picked = Tuple[Optional[SearchCandidate], Optional[List[Cue]]]


class DualSubtitleService:
    """Fetch a main and a translation track and merge them into one.

    Failures on either side never raise; they surface as an
    ``insufficient_data`` outcome.
    """

    def __init__(
        self,
        client: OpenSubtitlesClient,
        cache: Optional[TTLCache] = None,
        threshold_ms: int = DEFAULT_THRESHOLD_MS,
        max_download_attempts: int = 3,
        empty_ttl: Optional[float] = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._threshold_ms = threshold_ms
        self._max_attempts = max(1, max_download_attempts)
        self._empty_ttl = empty_ttl

    async def build(self, media_type: str, raw_id: str, main_lang: str, trans_lang: str) -> MergeOutcome:
        cache_key = (media_type, raw_id, main_lang, trans_lang)
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        outcome = await self._build(media_type, raw_id, main_lang, trans_lang)
        if self._cache is not None:
            ttl = None if outcome.ok else self._empty_ttl
            self._cache.set(cache_key, outcome, ttl=ttl)
        return outcome

    async def _build(self, media_type: str, raw_id: str, main_lang: str, trans_lang: str) -> MergeOutcome:
        base_params = build_search_params(media_type, raw_id)
        if base_params is None:
            log.info("Unsupported item id %s; nothing to search", raw_id)
            return MergeOutcome(status=STATUS_INSUFFICIENT, reason="unsupported id")

        main_ranked, trans_ranked = await asyncio.gather(
            self._client.search_and_rank(main_lang, base_params),
            self._client.search_and_rank(trans_lang, base_params),
        )
        if not main_ranked or not trans_ranked:
            missing = main_lang if not main_ranked else trans_lang
            log.info("No %s subtitles for %s; cannot merge", missing, raw_id)
            return MergeOutcome(status=STATUS_INSUFFICIENT, reason=f"no {missing} subtitles")

        (main_pick, main_cues), (trans_pick, trans_cues) = await asyncio.gather(
            self._first_usable(main_ranked),
            self._first_usable(trans_ranked),
        )
        if not main_cues or not trans_cues:
            missing = main_lang if not main_cues else trans_lang
            log.info("Could not load any %s subtitle for %s", missing, raw_id)
            return MergeOutcome(status=STATUS_INSUFFICIENT, reason=f"no usable {missing} content")

        merged = merge_cues(main_cues, trans_cues, self._threshold_ms)
        return MergeOutcome(status=STATUS_OK, cues=merged, main=main_pick, translation=trans_pick)

    async def _first_usable(self, ranked: List[SearchCandidate]) -> Picked:
        for candidate in ranked[: self._max_attempts]:
            cues = await self._client.fetch_and_decode(candidate)
            if cues and any(cue.is_timed for cue in cues):
                return candidate, cues
            log.info("Candidate %s gave no timed cues; trying next", candidate.id)
        return None, None


__all__ = ["DualSubtitleService"]
