"""Dual-language subtitles: fetch two OpenSubtitles tracks and merge them."""

__version__ = "0.2.0"
