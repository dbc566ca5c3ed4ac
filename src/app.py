from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict, Optional, Tuple

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from dual_subtitles import __version__
from dual_subtitles.cache import TTLCache
from dual_subtitles.constants import LANGUAGE_OPTIONS, SUBRIP_MEDIA_TYPE
from dual_subtitles.logger import REQUEST_ID, setup_logging
from dual_subtitles.scheduler import RequestScheduler
from dual_subtitles.service import DualSubtitleService
from dual_subtitles.settings import settings
from dual_subtitles.sources.opensubtitles import OpenSubtitlesClient
from dual_subtitles.srt import format_srt
from dual_subtitles.utils import InvalidToken, decode_payload, encode_payload, parse_user_settings

# ---------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------
setup_logging(settings.log_level, settings.json_logs, settings.log_file)
log = logging.getLogger("dual_subtitles.app")

# ---------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------
REQ_LATENCY = Histogram("dualsubs_request_seconds", "Request latency seconds", ["route"])
MERGE_COUNT = Counter("dualsubs_merge_total", "Merge attempts", ["status"])
DOWNLOAD_COUNT = Counter("dualsubs_download_total", "Merged track downloads")


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Started")
    http = httpx.AsyncClient(follow_redirects=True)
    scheduler = RequestScheduler(settings.requests_per_minute, settings.rate_window_seconds)
    client = OpenSubtitlesClient(
        http,
        scheduler,
        base_url=settings.opensubtitles_base_url,
        user_agent=settings.user_agent,
        search_timeout=settings.search_timeout,
        download_timeout=settings.download_timeout,
    )
    app.state.service = DualSubtitleService(
        client,
        cache=TTLCache(default_ttl=settings.result_cache_ttl, max_size=500),
        threshold_ms=settings.merge_threshold_ms,
        max_download_attempts=settings.max_download_attempts,
        empty_ttl=settings.empty_cache_ttl,
    )
    try:
        yield
    finally:
        log.info("Shutdown")
        await scheduler.aclose()
        await http.aclose()


app = FastAPI(title="Dual Language Subtitles", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
    token = REQUEST_ID.set(rid)
    try:
        response = await call_next(request)
    finally:
        REQUEST_ID.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


def get_service(request: Request) -> DualSubtitleService:
    return request.app.state.service


# ---------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------
MANIFEST = {
    "id": "org.dualsubs.opensubtitles",
    "version": __version__,
    "name": "Dual Language Subtitles",
    "description": "Main-language timing with translation text, merged from OpenSubtitles for language learning.",
    "catalogs": [],
    "resources": ["subtitles"],
    "types": ["movie", "series"],
    "idPrefixes": ["tt"],
    "behaviorHints": {"configurable": True, "configurationRequired": True},
    "config": [
        {
            "key": "mainLang",
            "type": "select",
            "title": "Main Language (Audio Language)",
            "options": LANGUAGE_OPTIONS,
            "required": True,
            "default": settings.default_main_lang,
        },
        {
            "key": "transLang",
            "type": "select",
            "title": "Translation Language (Your Language)",
            "options": LANGUAGE_OPTIONS,
            "required": True,
            "default": settings.default_trans_lang,
        },
    ],
}


def _languages(config: str) -> Tuple[str, str]:
    values = parse_user_settings(config)
    main_lang = (values.get("mainLang") or settings.default_main_lang).lower()
    trans_lang = (values.get("transLang") or settings.default_trans_lang).lower()
    return main_lang, trans_lang


@app.get("/manifest.json")
async def manifest() -> JSONResponse:
    return JSONResponse(MANIFEST)


@app.get("/{config}/manifest.json")
async def manifest_configured(config: str) -> JSONResponse:
    configured = dict(MANIFEST)
    configured["behaviorHints"] = {"configurable": True, "configurationRequired": False}
    return JSONResponse(configured)


@app.get("/healthz")
async def healthz() -> JSONResponse:
    return JSONResponse({"status": "ok", "version": __version__})


@app.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------
# Subtitles
# ---------------------------------------------------------------------
def _base_url(request: Request) -> str:
    return (settings.public_base_url or str(request.base_url)).rstrip("/")


def _strip_json_suffix(item_id: str) -> str:
    return item_id[: -len(".json")] if item_id.endswith(".json") else item_id


async def _subtitles_response(
    request: Request,
    service: DualSubtitleService,
    media_type: str,
    item_id: str,
    config: str,
) -> JSONResponse:
    started = time.perf_counter()
    # extra Stremio args (videoHash=..., filename=...) follow the id after a slash
    raw_id = _strip_json_suffix(item_id).split("/", 1)[0]
    main_lang, trans_lang = _languages(config)
    outcome = await service.build(media_type, raw_id, main_lang, trans_lang)
    MERGE_COUNT.labels(status=outcome.status).inc()
    REQ_LATENCY.labels(route="subtitles").observe(time.perf_counter() - started)

    subtitles = []
    if outcome.ok:
        token = encode_payload({"type": media_type, "id": raw_id, "main": main_lang, "trans": trans_lang})
        subtitles.append(
            {
                "id": f"dual-{main_lang}-{trans_lang}",
                "url": f"{_base_url(request)}/merged/{token}.srt",
                "lang": trans_lang,
            }
        )
    else:
        log.info("No merged track for %s/%s: %s", media_type, raw_id, outcome.reason)
    return JSONResponse({"subtitles": subtitles})


@app.get("/subtitles/{media_type}/{item_id:path}")
async def subtitles_default(
    request: Request,
    media_type: str,
    item_id: str,
    service: DualSubtitleService = Depends(get_service),
) -> JSONResponse:
    return await _subtitles_response(request, service, media_type, item_id, "")


@app.get("/{config}/subtitles/{media_type}/{item_id:path}")
async def subtitles_configured(
    request: Request,
    config: str,
    media_type: str,
    item_id: str,
    service: DualSubtitleService = Depends(get_service),
) -> JSONResponse:
    return await _subtitles_response(request, service, media_type, item_id, config)


def _token_fields(token: str) -> Dict[str, str]:
    try:
        payload = decode_payload(token)
    except InvalidToken as exc:
        log.warning("Invalid merged-track token: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or malformed token")
    fields: Dict[str, Optional[str]] = {key: payload.get(key) for key in ("type", "id", "main", "trans")}
    if not all(isinstance(value, str) and value for value in fields.values()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incomplete token")
    return fields  # type: ignore[return-value]


@app.get("/merged/{token}.srt")
async def merged_track(token: str, service: DualSubtitleService = Depends(get_service)) -> Response:
    fields = _token_fields(token)
    outcome = await service.build(fields["type"], fields["id"], fields["main"], fields["trans"])
    if not outcome.ok:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=outcome.reason or "Insufficient data")
    DOWNLOAD_COUNT.inc()
    filename = f"{fields['id'].replace(':', '_')}.{fields['main']}-{fields['trans']}.srt"
    return Response(
        content=format_srt(outcome.cues).encode("utf-8"),
        media_type=f"{SUBRIP_MEDIA_TYPE}; charset=utf-8",
        headers={
            "Content-Disposition": f'inline; filename="{filename}"',
            "Cache-Control": "public, max-age=3600",
        },
    )
