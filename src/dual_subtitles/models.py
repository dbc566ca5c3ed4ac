from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

STATUS_OK = "ok"
STATUS_INSUFFICIENT = "insufficient_data"


@dataclass(frozen=True)
class Cue:
    """One timed subtitle line; ``text`` may contain line breaks."""

    start_ms: int
    end_ms: int
    text: str = ""

    @property
    def is_timed(self) -> bool:
        return self.end_ms > self.start_ms >= 0


@dataclass(frozen=True)
class SearchCandidate:
    """A catalog search hit, kept only while ranking and downloading."""

    id: str
    download_url: str
    language_code: str
    format: str
    release_name: str = "Unknown"
    rating: float = 0.0
    download_count: int = 0
    language_name: str = ""


@dataclass
class MergeOutcome:
    status: str
    cues: List[Cue] = field(default_factory=list)
    main: Optional[SearchCandidate] = None
    translation: Optional[SearchCandidate] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


__all__ = ["Cue", "SearchCandidate", "MergeOutcome", "STATUS_OK", "STATUS_INSUFFICIENT"]
