from __future__ import annotations

import logging
import re
from typing import Iterable, List

from .errors import MalformedEntry
from .models import Cue

log = logging.getLogger("dual_subtitles.srt")

TIMESTAMP_RE = re.compile(r"(\d{2}):(\d{2}):(\d{2}),(\d{3})")
BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")
ARROW = "-->"


def parse_timestamp(value: str, strict: bool = False) -> int:
    """Convert ``HH:MM:SS,mmm`` into milliseconds.

    Malformed values are logged and read as 0 unless ``strict`` is set, in
    which case MalformedEntry is raised.
    """
    match = TIMESTAMP_RE.search(value or "")
    if not match:
        if strict:
            raise MalformedEntry(f"Invalid time format: {value!r}")
        log.error("Invalid time format encountered: %r", value)
        return 0
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return (hours * 3600 + minutes * 60 + seconds) * 1000 + millis


def format_timestamp(ms: int) -> str:
    ms = max(int(ms), 0)
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return f"{hours:02}:{minutes:02}:{seconds:02},{millis:03}"


def parse_srt(text: str) -> List[Cue]:
    """Parse SRT cue blocks into a cue list.

    Blocks are separated by blank lines: an index line (ignored), a
    ``start --> end`` timing line and one or more text lines. A block where
    either timestamp is unparsable is kept with zero timing; a block with no
    timing line at all is dropped.
    """
    normalized = (text or "").replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return []

    cues: List[Cue] = []
    for block in BLOCK_SPLIT_RE.split(normalized):
        lines = [line.strip() for line in block.strip().split("\n")]
        timing_idx = next((idx for idx, line in enumerate(lines[:2]) if ARROW in line), None)
        if timing_idx is None:
            if any(lines):
                log.warning("Skipping subtitle block without timing line: %r", lines[:2])
            continue
        start_raw, _, end_raw = lines[timing_idx].partition(ARROW)
        try:
            start_ms = parse_timestamp(start_raw.strip(), strict=True)
            end_ms = parse_timestamp(end_raw.strip(), strict=True)
        except MalformedEntry as exc:
            # a cue is timed only when both ends parse
            log.error("Invalid time format encountered: %s", exc)
            start_ms = end_ms = 0
        body = "\n".join(line for line in lines[timing_idx + 1:] if line)
        cues.append(Cue(start_ms=start_ms, end_ms=end_ms, text=body))
    return cues


def format_srt(cues: Iterable[Cue]) -> str:
    output: List[str] = []
    for idx, cue in enumerate(cues, start=1):
        output.append(str(idx))
        output.append(f"{format_timestamp(cue.start_ms)} --> {format_timestamp(cue.end_ms)}")
        output.append(cue.text)
        output.append("")
    return "\n".join(output)


__all__ = ["parse_timestamp", "format_timestamp", "parse_srt", "format_srt"]
