"""Turn downloaded subtitle bytes into clean text.

Handles optional gzip compression, unknown source encodings (statistical
detection through charset_normalizer) and byte-order-mark leftovers.
"""

from __future__ import annotations

import gzip
import logging
import zlib
from typing import Dict, Optional

from charset_normalizer import from_bytes

from .errors import DecodeError, DecompressionError

log = logging.getLogger("dual_subtitles.encoding")

GZIP_MAGIC = b"\x1f\x8b"
GZIP_SUFFIX = ".gz"
UTF8_BOM = b"\xef\xbb\xbf"
DEFAULT_CODEC = "utf_8"
FALLBACK_CODEC = "latin_1"

# Detector label (lower-case, "_" folded to "-") -> python codec.
# Covers the labels chardet-style detectors report and the python codec
# names charset_normalizer reports for the same encodings.
ENCODING_TABLE: Dict[str, str] = {
    "windows-1254": "cp1254",
    "cp1254": "cp1254",
    "iso-8859-9": "iso8859_9",
    "iso8859-9": "iso8859_9",
    "latin-5": "iso8859_9",
    "windows-1252": "cp1252",
    "cp1252": "cp1252",
    "utf-16le": "utf_16_le",
    "utf-16-le": "utf_16_le",
    "utf-16be": "utf_16_be",
    "utf-16-be": "utf_16_be",
    "utf-16": "utf_16",
    "ascii": DEFAULT_CODEC,
    "us-ascii": DEFAULT_CODEC,
    "utf-8": DEFAULT_CODEC,
    "utf8": DEFAULT_CODEC,
    # Other code pages common in subtitle uploads
    "windows-1250": "cp1250",
    "cp1250": "cp1250",
    "windows-1251": "cp1251",
    "cp1251": "cp1251",
    "windows-1253": "cp1253",
    "cp1253": "cp1253",
    "windows-1256": "cp1256",
    "cp1256": "cp1256",
    "iso-8859-2": "iso8859_2",
    "iso8859-2": "iso8859_2",
    "iso-8859-5": "iso8859_5",
    "iso8859-5": "iso8859_5",
    "iso-8859-7": "iso8859_7",
    "iso8859-7": "iso8859_7",
    "koi8-r": "koi8_r",
    "big5": "big5",
    "gb2312": "gb18030",
    "gb18030": "gb18030",
    "shift-jis": "shift_jis",
    "euc-kr": "euc_kr",
}


def is_gzipped(data: bytes, url_hint: str = "") -> bool:
    if (url_hint or "").lower().endswith(GZIP_SUFFIX):
        return True
    return data[:2] == GZIP_MAGIC


def decompress(data: bytes, url_hint: str = "") -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecompressionError(f"Could not decompress {url_hint or 'content'}: {exc}") from exc


def detect_label(data: bytes) -> Optional[str]:
    """Return the detector's raw encoding label, or None when undecided."""
    match = from_bytes(data).best()
    if match is None:
        return None
    return match.encoding


def resolve_codec(label: Optional[str]) -> str:
    if not label:
        return DEFAULT_CODEC
    key = label.strip().lower().replace("_", "-")
    codec = ENCODING_TABLE.get(key)
    if codec is None:
        log.warning("Detected encoding '%s' is not mapped. Falling back to UTF-8.", label)
        return DEFAULT_CODEC
    return codec


def normalize(data: bytes, url_hint: str = "") -> str:
    """Decompress (if needed), detect the encoding and decode ``data``.

    Raises DecompressionError for broken gzip payloads and DecodeError when
    even the latin-1 fallback fails.
    """
    if is_gzipped(data, url_hint):
        log.info("Decompressing gzipped subtitle: %s", url_hint)
        data = decompress(data, url_hint)
        log.debug("Decompressed size: %d", len(data))

    label: Optional[str] = None
    try:
        label = detect_label(data)
    except Exception as exc:  # noqa: BLE001
        log.warning("Encoding detection failed for %s: %s. Defaulting to UTF-8.", url_hint, exc)

    codec = resolve_codec(label)
    if label is None and data.startswith(UTF8_BOM):
        log.debug("No encoding detected; stripping UTF-8 BOM before decode")
        data = data[len(UTF8_BOM):]
    log.debug("Detected encoding: %s, using: %s", label, codec)

    try:
        text = data.decode(codec)
    except (UnicodeDecodeError, LookupError) as exc:
        log.warning("Decoding %s as %s failed (%s); falling back to latin-1", url_hint, codec, exc)
        try:
            return data.decode(FALLBACK_CODEC)
        except (UnicodeDecodeError, LookupError) as fallback_exc:
            raise DecodeError(f"Could not decode {url_hint or 'content'}") from fallback_exc

    if codec == DEFAULT_CODEC and text.startswith("\ufeff"):
        text = text[1:]
    return text


__all__ = [
    "ENCODING_TABLE",
    "decompress",
    "detect_label",
    "is_gzipped",
    "normalize",
    "resolve_codec",
]
