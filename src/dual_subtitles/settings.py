from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    addon_version: str = "0.2.0"
    opensubtitles_base_url: str = "https://rest.opensubtitles.org"
    user_agent: str = "TemporaryUserAgent"

    # Catalog quota: at most requests_per_minute searches per window
    requests_per_minute: int = 40
    rate_window_seconds: float = 60.0
    search_timeout: float = 10.0
    download_timeout: float = 15.0

    merge_threshold_ms: int = 500
    max_download_attempts: int = 3
    result_cache_ttl: int = 1800   # 30 minutes for merged tracks
    empty_cache_ttl: int = 300     # 5 minutes for insufficient data

    default_main_lang: str = "eng"
    default_trans_lang: str = "tur"

    public_base_url: Optional[str] = None
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None

    class Config:
        env_prefix = "DUAL_SUBS_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
