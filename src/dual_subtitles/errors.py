from __future__ import annotations


class DualSubtitlesError(RuntimeError):
    """Base class for failures raised by the subtitle pipeline."""


class NetworkError(DualSubtitlesError):
    """A catalog search or download request failed or timed out."""


class RateLimitExceeded(NetworkError):
    """The catalog answered with HTTP 429."""


class DecompressionError(DualSubtitlesError):
    """Downloaded content looked gzipped but could not be decompressed."""


class DecodeError(DualSubtitlesError):
    """Content could not be decoded, not even as latin-1."""


class MalformedEntry(DualSubtitlesError):
    """A single cue carries an unparsable timing string."""
