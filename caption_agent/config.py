"""运行配置：从 .env / 环境变量读取"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    openai_api_key: Optional[str] = None
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    proxy_url: str = "http://localhost:3000/api/generate"
    proxy_test_url: str = "http://localhost:3000/api/test"
    request_timeout: float = 30.0
    store_path: Path = Path.home() / ".caption_agent" / "preferences.json"
    start_url: str = "https://www.instagram.com/"
    headless: bool = False
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "AppConfig":
        if dotenv:
            load_dotenv()
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL", defaults.model),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            proxy_url=os.getenv("CAPTION_PROXY_URL", defaults.proxy_url),
            proxy_test_url=os.getenv("CAPTION_PROXY_TEST_URL", defaults.proxy_test_url),
            request_timeout=float(os.getenv("CAPTION_REQUEST_TIMEOUT", defaults.request_timeout)),
            store_path=Path(os.getenv("CAPTION_STORE_PATH", str(defaults.store_path))),
            start_url=os.getenv("CAPTION_START_URL", defaults.start_url),
            headless=_env_bool("CAPTION_HEADLESS", defaults.headless),
            port=int(os.getenv("PORT", defaults.port)),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
