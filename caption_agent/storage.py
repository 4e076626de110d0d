"""偏好存储：异步键值接口，首次读取时套用默认值"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from .config import AppConfig
from .models import Settings, SurfacePreferences

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "apiKey": "",
    "defaultTone": "casual",
    "useServerProxy": True,
    "hashtagCount": 5,
    "captionLength": "medium",
}


class PreferenceStore(ABC):
    """偏好存储接口。写入没有事务保证，后写者覆盖。"""

    @abstractmethod
    async def _read(self) -> Dict[str, Any]: ...

    @abstractmethod
    async def _write(self, values: Dict[str, Any]) -> None: ...

    async def get(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        stored = await self._read()
        wanted = list(keys) if keys is not None else list(DEFAULTS)
        return {k: stored.get(k, DEFAULTS.get(k)) for k in wanted}

    async def set(self, values: Dict[str, Any]) -> None:
        stored = await self._read()
        stored.update(values)
        await self._write(stored)


class MemoryPreferenceStore(PreferenceStore):

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    async def _read(self) -> Dict[str, Any]:
        return dict(self.data)

    async def _write(self, values: Dict[str, Any]) -> None:
        self.data = dict(values)


class JsonPreferenceStore(PreferenceStore):
    """JSON 文件存储，文件读写放到线程里避免阻塞事件循环"""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def _read(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._load)

    async def _write(self, values: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._dump, values)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("⚠ 偏好文件无法读取，使用默认值: %s (%s)", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, values: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(values, indent=2), encoding="utf-8")


async def load_settings(store: PreferenceStore, config: AppConfig) -> Settings:
    """从存储读取一次，生成本次请求使用的不可变配置"""
    prefs = await store.get()
    try:
        hashtag_count = int(prefs["hashtagCount"])
    except (TypeError, ValueError):
        hashtag_count = DEFAULTS["hashtagCount"]
    return Settings(
        api_key=prefs["apiKey"] or "",
        default_tone=prefs["defaultTone"] or DEFAULTS["defaultTone"],
        use_server_proxy=bool(prefs["useServerProxy"]),
        hashtag_count=hashtag_count,
        caption_length=prefs["captionLength"] or DEFAULTS["captionLength"],
        proxy_url=config.proxy_url,
        proxy_test_url=config.proxy_test_url,
        model=config.model,
        base_url=config.base_url,
        timeout=config.request_timeout,
    )


async def load_surface_preferences(store: PreferenceStore) -> SurfacePreferences:
    prefs = await store.get(["defaultTone", "captionLength", "hashtagCount"])
    return SurfacePreferences(
        tone=prefs["defaultTone"],
        caption_length=prefs["captionLength"],
        hashtag_count=prefs["hashtagCount"],
    )


async def save_surface_preferences(store: PreferenceStore, tone: Optional[str],
                                   caption_length: Optional[str], hashtag_count: Optional[int]) -> None:
    """保存控制面板上的选择，空值不覆盖已有偏好"""
    values = {
        "defaultTone": tone,
        "captionLength": caption_length,
        "hashtagCount": hashtag_count,
    }
    await store.set({k: v for k, v in values.items() if v is not None})
