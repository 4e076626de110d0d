"""页面控制面板与编排层之间的消息边界"""

import logging
from typing import Any, Dict

from .config import AppConfig
from .models import GenerationRequest
from .orchestrator import RequestOrchestrator
from .storage import PreferenceStore, load_settings

logger = logging.getLogger(__name__)

GENERATE_CAPTION = "generateCaption"
TEST_CONNECTION = "testConnection"


class MessageRouter:
    """
    处理 {type: "generateCaption", data} 与 {type: "testConnection"} 两种消息。
    每条消息都从存储重新读取一次配置，回复始终是 dict。
    """

    def __init__(self, orchestrator: RequestOrchestrator, store: PreferenceStore, config: AppConfig):
        self.orchestrator = orchestrator
        self.store = store
        self.config = config

    async def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        kind = message.get("type")
        settings = await load_settings(self.store, self.config)

        if kind == GENERATE_CAPTION:
            request = GenerationRequest.from_message(message.get("data") or {})
            result = await self.orchestrator.generate(request, settings)
            return result.to_message()
        if kind == TEST_CONNECTION:
            status = await self.orchestrator.test_connection(settings)
            return status.to_message()

        logger.warning("⚠ 未知消息类型: %s", kind)
        return {"success": False, "error": f"Unknown message type: {kind}"}
