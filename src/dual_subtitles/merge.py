"""Time-window alignment of a main cue track with a translation track.

Each main cue keeps its timing and takes the text of the nearest
translation cue (by start time) among those that overlap it or start within
``threshold_ms`` of it. The match is greedy per main cue, not a globally
optimal assignment: one translation cue may serve several main cues.

A lower bound into the translation track only moves forward, so a merge is
close to linear in the combined track length.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import List, Optional, Sequence, Tuple

from .models import Cue

log = logging.getLogger("dual_subtitles.merge")

DEFAULT_THRESHOLD_MS = 500
LINE_BREAK_RE = re.compile(r"\r?\n|\r")


def flatten_text(text: str) -> str:
    return LINE_BREAK_RE.sub(" ", text or "")


def _best_match(main: Cue, trans: Sequence[Cue], start: int, threshold_ms: int) -> Tuple[Optional[int], int]:
    """Return (index of best translation cue or None, new lower bound)."""
    lower = start
    best_idx: Optional[int] = None
    smallest = None
    for i in range(start, len(trans)):
        cue = trans[i]
        if not cue.is_timed:
            log.debug("Skipping untimed translation cue #%d", i)
            if i == lower:
                lower = i + 1
            continue

        starts_inside = main.start_ms <= cue.start_ms < main.end_ms
        ends_inside = main.start_ms < cue.end_ms <= main.end_ms
        within = cue.start_ms >= main.start_ms and cue.end_ms <= main.end_ms
        contains = cue.start_ms < main.start_ms and cue.end_ms > main.end_ms
        time_diff = abs(main.start_ms - cue.start_ms)

        if starts_inside or ends_inside or within or contains or time_diff < threshold_ms:
            if smallest is None or time_diff < smallest:
                smallest = time_diff
                best_idx = i
        elif cue.start_ms > main.end_ms + threshold_ms:
            break

        if i == lower and cue.end_ms < main.start_ms - threshold_ms * 2:
            lower = i + 1
    return best_idx, lower


def merge_cues(
    main: Sequence[Cue],
    trans: Sequence[Cue],
    threshold_ms: int = DEFAULT_THRESHOLD_MS,
) -> List[Cue]:
    """Merge ``trans`` text onto ``main`` timing.

    The result always has one cue per main cue. Main cues without usable
    timing, and main cues with no matching translation, come out with empty
    text.
    """
    log.info("Merging %d main subs with %d translation subs.", len(main), len(trans))
    merged: List[Cue] = []
    trans_index = 0
    for position, cue in enumerate(main):
        if not cue.is_timed:
            log.warning("Main cue #%d has no usable timing; emitting empty placeholder", position)
            merged.append(dataclasses.replace(cue, text=""))
            continue
        best_idx, trans_index = _best_match(cue, trans, trans_index, threshold_ms)
        text = flatten_text(trans[best_idx].text) if best_idx is not None else ""
        merged.append(dataclasses.replace(cue, text=text))
    log.info("Finished merging. Result has %d entries.", len(merged))
    return merged


__all__ = ["merge_cues", "flatten_text", "DEFAULT_THRESHOLD_MS"]
