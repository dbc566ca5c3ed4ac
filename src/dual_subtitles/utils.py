import base64
import binascii
import json
from typing import Dict
from urllib.parse import unquote


class InvalidToken(ValueError):
    """Raised when a merged-track token cannot be decoded."""


def parse_user_settings(user_settings: str) -> Dict[str, str]:
    """Parse an addon config path segment.

    Accepts the ``key=value,key=value`` form as well as the URL-encoded JSON
    object that Stremio's configuration page produces.
    """
    _user_settings: Dict[str, str] = {}
    if not user_settings:
        return _user_settings
    raw = unquote(user_settings).strip()
    if raw.startswith("{"):
        try:
            loaded = json.loads(raw)
        except json.JSONDecodeError:
            return _user_settings
        if isinstance(loaded, dict):
            return {str(k): str(v) for k, v in loaded.items() if v is not None}
        return _user_settings
    for setting in (s for s in raw.split(",") if s):
        if "=" not in setting:
            continue
        key, value = setting.split("=", 1)
        if not key:
            continue
        _user_settings[key.strip()] = value.strip()
    return _user_settings


def encode_payload(payload: Dict) -> str:
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("utf-8").strip("=")


def decode_payload(token: str) -> Dict:
    try:
        padding = "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(token + padding)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        raise InvalidToken(str(exc)) from exc
    if not isinstance(payload, dict):
        raise InvalidToken("token payload is not an object")
    return payload
