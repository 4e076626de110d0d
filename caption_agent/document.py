"""宿主文档抽象：定位器只依赖这里的能力接口，测试用合成 HTML 替换真实页面"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import soupsieve
from bs4 import BeautifulSoup, Tag

from .errors import RuleError
from .models import MatchRule

NODE_ID_ATTR = "data-cg-id"
HEIGHT_ATTR = "data-cg-height"

_STYLE_HEIGHT = re.compile(r"(?:^|;)\s*height\s*:\s*([\d.]+)px", re.I)


class DocumentNode(ABC):
    """文档中的单个节点"""

    @property
    @abstractmethod
    def tag(self) -> str: ...

    @property
    @abstractmethod
    def attrs(self) -> Dict[str, str]: ...

    @property
    @abstractmethod
    def text(self) -> str: ...

    @property
    @abstractmethod
    def height(self) -> float: ...

    @abstractmethod
    def select(self, rule: MatchRule) -> List["DocumentNode"]:
        """在当前节点子树内匹配"""

    @property
    def node_id(self) -> Optional[str]:
        return self.attrs.get(NODE_ID_ATTR)


class HostDocument(ABC):
    """宿主页面的能力接口"""

    @abstractmethod
    def select(self, rule: MatchRule) -> List[DocumentNode]:
        """按规则返回所有匹配节点（文档顺序）。规则非法时抛出 RuleError。"""


class SoupNode(DocumentNode):

    def __init__(self, tag: Tag):
        self._tag = tag

    @property
    def tag(self) -> str:
        return self._tag.name

    @property
    def attrs(self) -> Dict[str, str]:
        return {
            k: " ".join(v) if isinstance(v, list) else v
            for k, v in self._tag.attrs.items()
        }

    @property
    def text(self) -> str:
        return self._tag.get_text()

    @property
    def height(self) -> float:
        raw = self._tag.get(HEIGHT_ATTR)
        if raw:
            try:
                return float(raw)
            except ValueError:
                pass
        match = _STYLE_HEIGHT.search(self._tag.get("style", ""))
        return float(match.group(1)) if match else 0.0

    def select(self, rule: MatchRule) -> List[DocumentNode]:
        return _select(self._tag, rule)

    def __eq__(self, other):
        return isinstance(other, SoupNode) and other._tag is self._tag

    def __hash__(self):
        return id(self._tag)

    def __repr__(self):
        return f"<SoupNode {self.tag} id={self.node_id}>"


class SoupDocument(HostDocument):
    """
    基于 BeautifulSoup 的页面快照。
    实时页面由 Perception.capture() 生成，测试中直接传入合成 HTML。
    """

    def __init__(self, html: str):
        self.soup = BeautifulSoup(html, "html.parser")

    def select(self, rule: MatchRule) -> List[DocumentNode]:
        return _select(self.soup, rule)


def _select(root: Tag, rule: MatchRule) -> List[DocumentNode]:
    try:
        found = root.select(rule.selector)
    except (soupsieve.SelectorSyntaxError, NotImplementedError, ValueError) as e:
        raise RuleError(f"Invalid selector: {rule.selector} ({e})") from e
    if rule.contains is not None:
        found = [t for t in found if rule.contains in t.get_text()]
    if rule.ancestor:
        found = _ancestors(found, rule.ancestor)
    return [SoupNode(t) for t in found]


def _ancestors(tags: List[Tag], levels: int) -> List[Tag]:
    """每个匹配节点向上 levels 层，层数不够的丢弃，结果去重并保持顺序"""
    result: List[Tag] = []
    seen = set()
    for tag in tags:
        current = tag
        for _ in range(levels):
            current = current.parent
            if current is None or isinstance(current, BeautifulSoup):
                break
        else:
            if id(current) not in seen:
                seen.add(id(current))
                result.append(current)
    return result
