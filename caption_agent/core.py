"""说明生成助手核心类：把感知、生命周期、执行和请求编排接到实时浏览器上"""

import asyncio
import logging
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .config import AppConfig
from .controller import GENERATE_BINDING, TEST_CONNECTION_BINDING, PageController
from .document import HostDocument
from .errors import CaptionError, remediation_hints
from .lifecycle import LifecycleController, TickQueue, poll_driver, run_lifecycle
from .messaging import GENERATE_CAPTION, TEST_CONNECTION, MessageRouter
from .models import GenerationRequest, clamp_hashtag_count
from .normalizer import compose_caption
from .orchestrator import RequestOrchestrator
from .perception import ElementLocator, PageStateClassifier, Perception
from .storage import PreferenceStore, load_surface_preferences, save_surface_preferences

logger = logging.getLogger(__name__)

MUTATION_BINDING = "__captionAgentMutation"

# 只关心新增节点以及 role / aria-label 的变化
_OBSERVER_JS = """
(bindingName) => {
    if (window.__captionAgentObserver) return;
    const observer = new MutationObserver((mutations) => {
        for (const mutation of mutations) {
            if (mutation.type === 'attributes' || mutation.addedNodes.length) {
                window[bindingName]();
                return;
            }
        }
    });
    observer.observe(document.body, {
        childList: true,
        subtree: true,
        attributes: true,
        attributeFilter: ['role', 'aria-label'],
    });
    window.__captionAgentObserver = observer;
}
"""


class CaptionAgent:
    """Instagram 发帖说明生成助手"""

    def __init__(self, config: AppConfig, store: PreferenceStore,
                 orchestrator: Optional[RequestOrchestrator] = None):
        self.config = config
        self.store = store
        self.router = MessageRouter(orchestrator or RequestOrchestrator(), store, config)
        self.perception = Perception()
        self.ticks = TickQueue()
        self.page: Optional[Page] = None
        self.controller: Optional[PageController] = None
        self.lifecycle: Optional[LifecycleController] = None

    async def run(self, start_url: Optional[str] = None):
        """
        打开浏览器并保持运行，直到浏览器被关闭。
        """
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.config.headless)
            context = await browser.new_context()
            self.page = await context.new_page()
            self.controller = PageController(self.page, self.perception)
            self.lifecycle = LifecycleController(
                renderer=self.controller,
                preferences=lambda: load_surface_preferences(self.store),
            )

            await self.page.expose_function(MUTATION_BINDING, self._on_mutation)
            await self.page.expose_function(GENERATE_BINDING, self.handle_generate)
            await self.page.expose_function(TEST_CONNECTION_BINDING, self.handle_test_connection)
            self.page.on("load", self._on_load)

            await self.page.goto(start_url or self.config.start_url)
            await self._install_observer()
            logger.info("✓ 已打开页面: %s", self.page.url)

            tasks = [
                asyncio.create_task(poll_driver(self.ticks)),
                asyncio.create_task(run_lifecycle(self.ticks, self.lifecycle, self._snapshot)),
                asyncio.create_task(self._debug_later(2.0)),
            ]
            try:
                await self.page.wait_for_event("close", timeout=0)
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                await browser.close()
            logger.info("✓ 浏览器已关闭")

    def _on_mutation(self) -> None:
        self.ticks.notify("mutation")

    async def _on_load(self, _page: Page) -> None:
        # 整页跳转后 observer 随旧文档一起消失
        await self._install_observer()
        self.ticks.notify("load")

    async def _install_observer(self) -> None:
        try:
            await self.page.evaluate(_OBSERVER_JS, MUTATION_BINDING)
        except PlaywrightError as e:
            logger.warning("⚠ 安装 MutationObserver 失败: %s", e)

    async def _snapshot(self) -> Optional[HostDocument]:
        try:
            return await self.perception.capture(self.page)
        except PlaywrightError as e:
            logger.debug("快照失败，跳过本轮: %s", e)
            return None

    async def _debug_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        document = await self._snapshot()
        if document is not None:
            logger.info("页面检测结果:\n%s", PageStateClassifier(ElementLocator(document)).debug_report())

    async def handle_generate(self, controls: Dict[str, Any]) -> Dict[str, Any]:
        """控制面板的生成按钮回调"""
        await self.controller.clear_error()
        await self.controller.show_status("Generating caption...", "loading")

        tone = controls.get("tone") or None
        caption_length = controls.get("captionLength") or None
        try:
            hashtag_count = clamp_hashtag_count(controls.get("hashtagCount"))
        except (TypeError, ValueError):
            hashtag_count = None
        user_prompt = controls.get("userPrompt") or ""

        image_data = await self.controller.capture_image_data()
        await save_surface_preferences(self.store, tone, caption_length, hashtag_count)

        request = GenerationRequest(
            tone=tone,
            caption_length=caption_length,
            hashtag_count=hashtag_count,
            user_prompt=user_prompt,
            image_data=image_data,
            image_description=user_prompt or "Instagram post image",
        )
        reply = await self.router.handle({"type": GENERATE_CAPTION, "data": request.to_message()})

        if not reply.get("success"):
            error = reply.get("error") or "Failed to generate caption"
            await self.controller.show_error(error, remediation_hints(error))
            return reply

        try:
            await self.controller.insert_caption(compose_caption(reply["caption"], reply["hashtags"]))
        except (CaptionError, PlaywrightError) as e:
            logger.error("❌ 写入说明失败: %s", e)
            await self.controller.show_error(str(e), [])
            return {"success": False, "error": str(e)}

        await self.controller.insert_alt_text(reply["altText"])
        await self.controller.show_status("Caption generated successfully!", "success")
        return reply

    async def handle_test_connection(self) -> Dict[str, Any]:
        reply = await self.router.handle({"type": TEST_CONNECTION})
        if reply.get("success"):
            await self.controller.show_status("✅ Connection successful", "success")
        else:
            await self.controller.show_status(f"❌ Connection failed: {reply.get('error')}", "error")
        return reply
