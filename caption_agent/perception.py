"""感知模块：按优先级规则定位宿主页面元素，并判断发帖界面是否打开"""

import logging
from typing import Dict, List, Optional, Sequence, Union

from playwright.async_api import Page

from .document import HEIGHT_ATTR, NODE_ID_ATTR, HostDocument, SoupDocument
from .errors import RuleError
from .models import ElementCategory, LocatedElement, MatchRule

logger = logging.getLogger(__name__)

SURFACE_ID = "caption-generator-ui"
INDICATOR_ID = "caption-generator-indicator"
MIN_CONTAINER_HEIGHT = 100


def _rules(*selectors: str) -> List[MatchRule]:
    return [MatchRule.parse(s) for s in selectors]


# 每个类别的候选规则，按优先级排列；Instagram 改版时只需调整这里
DEFAULT_RULES: Dict[ElementCategory, List[MatchRule]] = {
    ElementCategory.DIALOG_ROOT: _rules(
        'div[role="dialog"] form',
        'div[role="dialog"] div[role="presentation"]',
        'div[role="dialog"] div[contenteditable="true"]',
        'div[role="dialog"]',
    ),
    ElementCategory.CAPTION_INPUT: _rules(
        'textarea[aria-label="Write a caption..."]',
        'textarea[placeholder="Write a caption..."]',
        '[contenteditable="true"][role="textbox"]',
        '[data-lexical-editor="true"]',
    ),
    ElementCategory.ALT_TEXT_INPUT: _rules(
        'textarea[aria-label="Write alt text..."]',
        'textarea[placeholder="Write alt text..."]',
        '[contenteditable="true"][aria-label*="alt"]',
    ),
    ElementCategory.IMAGE_PREVIEW: _rules(
        'div[role="dialog"] img[style*="object-fit: cover"]',
        'div[role="dialog"] img',
    ),
    ElementCategory.INSERTION_ANCHOR: [
        # 说明框向上三层的容器
        MatchRule('textarea[aria-label="Write a caption..."]', ancestor=3),
        MatchRule('[contenteditable="true"][role="textbox"]', ancestor=3),
        MatchRule('div[role="dialog"] form div[data-focus-lock-disabled="false"]'),
    ],
    ElementCategory.CONTENT_CONTAINER: _rules(
        'div[role="dialog"] div > div > div',
    ),
}


class ElementLocator:
    """
    元素定位器：对每个类别依次尝试规则，第一条有结果的规则胜出。
    规则出错只记录日志并跳过，不会向外抛出。
    """

    def __init__(self, document: HostDocument,
                 rules: Optional[Dict[ElementCategory, Sequence[MatchRule]]] = None):
        self.document = document
        self.rules = rules if rules is not None else DEFAULT_RULES

    def locate(self, category: Union[ElementCategory, str]) -> Optional[LocatedElement]:
        found = self.locate_all(category)
        return found[0] if found else None

    def locate_all(self, category: Union[ElementCategory, str]) -> List[LocatedElement]:
        """返回第一条命中规则的全部节点"""
        category = ElementCategory(category)
        for rule in self.rules.get(category, ()):
            try:
                nodes = self.document.select(rule)
            except RuleError as e:
                logger.warning("⚠ 规则无效，跳过 [%s] %s: %s", category.value, rule.describe(), e)
                continue
            if nodes:
                return [LocatedElement(category, rule, node) for node in nodes]
        return []

    def largest_containers(self, min_height: float = MIN_CONTAINER_HEIGHT) -> List[LocatedElement]:
        """按尺寸过滤内容容器，排除装饰性的小节点"""
        return [
            found for found in self.locate_all(ElementCategory.CONTENT_CONTAINER)
            if found.node.height > min_height
        ]

    def insertion_point(self) -> Optional[LocatedElement]:
        """控制面板的挂载点：锚点 → 尺寸足够的内容容器 → 对话框本身"""
        anchor = self.locate(ElementCategory.INSERTION_ANCHOR)
        if anchor:
            return anchor
        containers = self.largest_containers()
        if containers:
            return containers[0]
        return self.locate(ElementCategory.DIALOG_ROOT)


class PageStateClassifier:
    """根据定位结果推导页面状态，所有方法都不会抛出异常"""

    def __init__(self, locator: ElementLocator):
        self.locator = locator

    def is_target_surface_active(self) -> bool:
        if self.locator.locate(ElementCategory.DIALOG_ROOT) is None:
            return False
        if self.locator.locate(ElementCategory.CAPTION_INPUT) is not None:
            return True
        return self.locator.locate(ElementCategory.IMAGE_PREVIEW) is not None

    def has_uploaded_image(self) -> bool:
        """只在对话框内部查找图片"""
        dialog = self.locator.locate(ElementCategory.DIALOG_ROOT)
        if dialog is None:
            return False
        try:
            return bool(dialog.node.select(MatchRule("img")))
        except RuleError:
            return False

    def has_control_surface(self) -> bool:
        try:
            return bool(self.locator.document.select(MatchRule(f"#{SURFACE_ID}")))
        except RuleError:
            return False

    def debug_report(self) -> str:
        """当前页面的检测结果摘要"""
        lines = [
            f"create post page: {self.is_target_surface_active()}",
            f"caption input found: {self.locator.locate(ElementCategory.CAPTION_INPUT) is not None}",
            f"image uploaded: {self.has_uploaded_image()}",
            f"insertion point found: {self.locator.insertion_point() is not None}",
            f"control surface present: {self.has_control_surface()}",
        ]
        return "\n".join(lines)


class Perception:
    """
    感知模块：给实时页面的元素打上编号和高度，再序列化成快照。
    编号跨快照递增，已编号的元素保留原编号，因此旧快照里的 [data-cg-id]
    要么仍指向同一个节点，要么已经找不到。
    """

    def __init__(self):
        self.last_element_id = 0

    async def capture(self, page: Page) -> SoupDocument:
        js_code = """
        ([idAttr, heightAttr, startId]) => {
            let currentId = startId;
            for (const el of document.querySelectorAll('body *')) {
                if (!el.hasAttribute(idAttr)) {
                    currentId += 1;
                    el.setAttribute(idAttr, String(currentId));
                }
                const height = el.offsetHeight || 0;
                if (height > 0) {
                    el.setAttribute(heightAttr, String(height));
                } else {
                    el.removeAttribute(heightAttr);
                }
            }
            return {html: document.documentElement.outerHTML, lastId: currentId};
        }
        """
        result = await page.evaluate(js_code, [NODE_ID_ATTR, HEIGHT_ATTR, self.last_element_id])
        self.last_element_id = max(self.last_element_id, int(result["lastId"]))
        return SoupDocument(result["html"])
