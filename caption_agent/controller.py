"""执行模块：在实时页面上插入/移除控制面板，写入说明和替代文本，读取上传的图片"""

import logging
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .document import NODE_ID_ATTR
from .errors import LocatorMiss, RenderError
from .lifecycle import SurfaceRenderer
from .models import ElementCategory, LocatedElement, SurfacePreferences
from .perception import INDICATOR_ID, SURFACE_ID, ElementLocator, Perception

logger = logging.getLogger(__name__)

GENERATE_BINDING = "__captionAgentGenerate"
TEST_CONNECTION_BINDING = "__captionAgentTestConnection"

# 旧快照里的编号可能已失效，不等待 Playwright 默认的 30 秒
ACTION_TIMEOUT_MS = 5000

SURFACE_CSS = """
.caption-generator-container { margin: 10px 0; padding: 8px; border-radius: 8px; background: #f9f9f9;
  border: 1px solid #dbdbdb; font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
  position: relative; z-index: 9999; }
.caption-generator-row { display: flex; align-items: center; gap: 8px; flex-wrap: wrap; margin: 4px 0; }
.caption-generator-button { background: #0095f6; color: white; border: none; border-radius: 4px;
  padding: 8px 16px; font-weight: 600; cursor: pointer; }
.caption-generator-status { margin-top: 8px; font-size: 14px; min-height: 20px; }
.caption-generator-status.loading { color: #0095f6; }
.caption-generator-status.success { color: #2ecc71; }
.caption-generator-status.error { color: #e74c3c; }
.caption-generator-error { background: #ffebee; border: 1px solid #f44336; border-radius: 4px;
  padding: 10px; margin: 10px 0; color: #d32f2f; font-size: 14px; }
"""

_INSERT_JS = """
([anchorSelector, surfaceId, indicatorId, css, prefs, generateName]) => {
    if (document.getElementById(surfaceId)) return true;
    const anchor = document.querySelector(anchorSelector);
    if (!anchor) return false;

    if (!document.getElementById('caption-generator-styles')) {
        const style = document.createElement('style');
        style.id = 'caption-generator-styles';
        style.textContent = css;
        document.head.appendChild(style);
    }

    const makeSelect = (id, values, selected) => {
        const select = document.createElement('select');
        select.id = id;
        for (const value of values) {
            const option = document.createElement('option');
            option.value = value;
            option.textContent = value.charAt(0).toUpperCase() + value.slice(1);
            select.appendChild(option);
        }
        select.value = selected;
        return select;
    };

    const container = document.createElement('div');
    container.id = surfaceId;
    container.className = 'caption-generator-container';

    const tone = makeSelect('caption-tone-selector', prefs.tones, prefs.tone);
    const length = makeSelect('caption-length-selector', prefs.lengths, prefs.caption_length);
    const count = document.createElement('input');
    count.type = 'number'; count.min = '0'; count.max = '30';
    count.id = 'caption-hashtag-count';
    count.value = String(prefs.hashtag_count);
    const prompt = document.createElement('input');
    prompt.type = 'text';
    prompt.id = 'caption-prompt-input';
    prompt.placeholder = 'Optional: Add context for better captions';

    const button = document.createElement('button');
    button.type = 'button';
    button.className = 'caption-generator-button';
    button.textContent = '✨ Generate Caption';
    button.onclick = () => window[generateName]({
        tone: tone.value,
        captionLength: length.value,
        hashtagCount: parseInt(count.value, 10),
        userPrompt: prompt.value,
    });

    const row1 = document.createElement('div');
    row1.className = 'caption-generator-row';
    row1.append('Tone:', tone, 'Length:', length, '# Hashtags:', count);
    const row2 = document.createElement('div');
    row2.className = 'caption-generator-row';
    row2.append(prompt, button);

    const status = document.createElement('div');
    status.id = 'caption-generator-status';
    status.className = 'caption-generator-status';

    container.append(row1, row2, status);
    anchor.insertAdjacentElement('afterend', container);

    const indicator = document.createElement('div');
    indicator.id = indicatorId;
    indicator.textContent = 'Instagram Caption Generator Active';
    indicator.style.cssText = 'color:#0095f6;font-size:12px;font-weight:bold;margin:4px 0;';
    container.insertAdjacentElement('beforebegin', indicator);
    return true;
}
"""

_REMOVE_JS = """
(ids) => {
    for (const id of ids) {
        const el = document.getElementById(id);
        if (el) el.remove();
    }
}
"""

_STATUS_JS = """
([text, kind]) => {
    const status = document.getElementById('caption-generator-status');
    if (!status) return false;
    status.textContent = text;
    status.className = 'caption-generator-status' + (kind ? ' ' + kind : '');
    return true;
}
"""

_ERROR_JS = """
([message, hints, testName]) => {
    const ui = document.getElementById('caption-generator-ui');
    if (!ui) return false;
    let box = ui.querySelector('.caption-generator-error');
    if (!box) {
        box = document.createElement('div');
        box.className = 'caption-generator-error';
        ui.appendChild(box);
    }
    box.replaceChildren();
    const title = document.createElement('div');
    title.style.fontWeight = 'bold';
    title.textContent = 'Error Generating Caption';
    const body = document.createElement('div');
    body.textContent = message;
    box.append(title, body);
    if (hints.length) {
        const button = document.createElement('button');
        button.type = 'button';
        button.textContent = 'Test Connection';
        button.onclick = () => window[testName]();
        const list = document.createElement('ul');
        for (const hint of hints) {
            const item = document.createElement('li');
            item.textContent = hint;
            list.appendChild(item);
        }
        box.append(button, list);
    }
    return true;
}
"""

_CLEAR_ERROR_JS = """
() => {
    const box = document.querySelector('#caption-generator-ui .caption-generator-error');
    if (box) box.remove();
}
"""

_IMAGE_JS = """
async (el) => {
    if (!el || !el.src) return null;
    if (el.src.startsWith('data:')) return el.src;
    try {
        const response = await fetch(el.src);
        const blob = await response.blob();
        return await new Promise((resolve) => {
            const reader = new FileReader();
            reader.onloadend = () => resolve(reader.result);
            reader.onerror = () => resolve(null);
            reader.readAsDataURL(blob);
        });
    } catch (e) {
        return null;
    }
}
"""


def node_selector(found: LocatedElement) -> str:
    return f'[{NODE_ID_ATTR}="{found.node_id}"]'


class PageController(SurfaceRenderer):
    """执行模块：所有页面修改都经过这里"""

    def __init__(self, page: Page, perception: Optional[Perception] = None):
        self.page = page
        self.perception = perception or Perception()

    async def insert(self, anchor: LocatedElement, preferences: SurfacePreferences) -> None:
        prefs = {
            "tone": preferences.tone,
            "caption_length": preferences.caption_length,
            "hashtag_count": preferences.hashtag_count,
            "tones": list(preferences.tones),
            "lengths": list(preferences.lengths),
        }
        try:
            inserted = await self.page.evaluate(_INSERT_JS, [
                node_selector(anchor), SURFACE_ID, INDICATOR_ID, SURFACE_CSS, prefs, GENERATE_BINDING,
            ])
        except PlaywrightError as e:
            raise RenderError(f"Could not insert control surface: {e}") from e
        if not inserted:
            raise RenderError(f"Insertion anchor {node_selector(anchor)} is gone")

    async def remove(self) -> None:
        try:
            await self.page.evaluate(_REMOVE_JS, [SURFACE_ID, INDICATOR_ID])
        except PlaywrightError as e:
            raise RenderError(f"Could not remove control surface: {e}") from e

    async def locator(self) -> ElementLocator:
        """基于最新快照的定位器，节点句柄只在本次操作中使用"""
        return ElementLocator(await self.perception.capture(self.page))

    async def require(self, category: ElementCategory) -> LocatedElement:
        found = (await self.locator()).locate(category)
        if found is None:
            raise LocatorMiss(category.value)
        return found

    async def insert_caption(self, text: str) -> None:
        """写入说明框；找不到说明框时抛出 LocatorMiss"""
        found = await self.require(ElementCategory.CAPTION_INPUT)
        await self.page.locator(node_selector(found)).fill(text, timeout=ACTION_TIMEOUT_MS)
        logger.info("✓ 写入说明 (%d 字符)", len(text))

    async def insert_alt_text(self, text: str) -> bool:
        """替代文本输入框不一定可见，找不到时跳过"""
        found = (await self.locator()).locate(ElementCategory.ALT_TEXT_INPUT)
        if found is None:
            logger.info("替代文本输入框不可见，跳过")
            return False
        try:
            await self.page.locator(node_selector(found)).fill(text, timeout=ACTION_TIMEOUT_MS)
        except PlaywrightError as e:
            logger.warning("⚠ 写入替代文本失败: %s", e)
            return False
        logger.info("✓ 写入替代文本")
        return True

    async def capture_image_data(self) -> Optional[str]:
        """把预览图转换为 data URL，失败返回 None"""
        found = (await self.locator()).locate(ElementCategory.IMAGE_PREVIEW)
        if found is None:
            return None
        try:
            return await self.page.locator(node_selector(found)).evaluate(_IMAGE_JS, timeout=ACTION_TIMEOUT_MS)
        except PlaywrightError as e:
            logger.warning("⚠ 读取图片失败: %s", e)
            return None

    async def show_status(self, text: str, kind: str = "") -> None:
        await self.page.evaluate(_STATUS_JS, [text, kind])

    async def show_error(self, message: str, hints: List[str]) -> None:
        await self.show_status(f"Error: {message}", "error")
        await self.page.evaluate(_ERROR_JS, [message, hints, TEST_CONNECTION_BINDING])

    async def clear_error(self) -> None:
        await self.page.evaluate(_CLEAR_ERROR_JS)
