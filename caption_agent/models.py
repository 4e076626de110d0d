"""数据模型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

MAX_HASHTAGS = 30
CAPTION_LENGTHS = ("short", "medium", "long")


class ElementCategory(str, Enum):
    """宿主页面中需要定位的逻辑元素类别"""
    DIALOG_ROOT = "dialog-root"
    CAPTION_INPUT = "caption-input"
    ALT_TEXT_INPUT = "alt-text-input"
    IMAGE_PREVIEW = "image-preview"
    INSERTION_ANCHOR = "insertion-anchor"
    CONTENT_CONTAINER = "content-container"


class NormalizationTier(str, Enum):
    """解析模型回复时最终生效的层级"""
    STRUCTURED = "structured"
    EXTRACTED = "extracted"
    FALLBACK_EXTRACTED = "fallback_extracted"
    HEURISTIC = "heuristic"


class UIState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class MatchRule:
    """单条候选匹配规则：CSS 选择器 + 可选的文本包含条件 + 可选的向上层数"""
    selector: str
    contains: Optional[str] = None
    ancestor: int = 0  # 匹配后再向上取第 N 层父节点

    @classmethod
    def parse(cls, raw: str) -> "MatchRule":
        """解析 `base:contains("text")rest` 形式的扩展选择器"""
        marker = ':contains("'
        start = raw.find(marker)
        if start == -1:
            return cls(raw)
        end = raw.find('")', start + len(marker))
        if end == -1:
            return cls(raw)
        text = raw[start + len(marker):end]
        return cls(raw[:start] + raw[end + 2:], contains=text)

    def describe(self) -> str:
        text = self.selector
        if self.contains is not None:
            text += f' (contains "{self.contains}")'
        if self.ancestor:
            text += f" (ancestor {self.ancestor})"
        return text


@dataclass
class LocatedElement:
    """一次定位得到的节点句柄，只在产生它的快照内有效"""
    category: ElementCategory
    rule: MatchRule
    node: Any  # DocumentNode

    @property
    def node_id(self) -> Optional[str]:
        return self.node.node_id


@dataclass
class GenerationRequest:
    """单次生成请求（用户操作一次生成一次，不持久化）"""
    tone: Optional[str] = None
    caption_length: Optional[str] = None
    hashtag_count: Optional[int] = None
    user_prompt: str = ""
    image_data: Optional[str] = None  # data URL
    image_description: str = ""

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "GenerationRequest":
        count = data.get("hashtagCount")
        try:
            count = int(count) if count not in (None, "") else None
        except (TypeError, ValueError):
            count = None
        return cls(
            tone=data.get("tone") or None,
            caption_length=data.get("captionLength") or None,
            hashtag_count=count,
            user_prompt=data.get("userPrompt") or "",
            image_data=data.get("imageData") or None,
            image_description=data.get("imageDescription") or "",
        )

    def to_message(self) -> Dict[str, Any]:
        return {
            "tone": self.tone,
            "captionLength": self.caption_length,
            "hashtagCount": self.hashtag_count,
            "userPrompt": self.user_prompt,
            "imageData": self.image_data,
            "imageDescription": self.image_description,
        }


def clamp_hashtag_count(count: int) -> int:
    return max(0, min(MAX_HASHTAGS, int(count)))


@dataclass
class NormalizedCaption:
    """规范化后的模型输出"""
    caption: str
    hashtags: List[str]
    alt_text: str
    tier: NormalizationTier

    @property
    def degraded(self) -> bool:
        return self.tier in (NormalizationTier.FALLBACK_EXTRACTED, NormalizationTier.HEURISTIC)


@dataclass
class GenerationResult:
    """
    生成结果。成功时 caption/hashtags/alt_text 三者齐全，失败时只有 error。
    请使用 succeeded() / failed() 构造。
    """
    success: bool
    caption: Optional[str] = None
    hashtags: Optional[List[str]] = None
    alt_text: Optional[str] = None
    error: Optional[str] = None
    tier: Optional[NormalizationTier] = None

    @classmethod
    def succeeded(cls, normalized: NormalizedCaption) -> "GenerationResult":
        return cls(
            success=True,
            caption=normalized.caption,
            hashtags=list(normalized.hashtags),
            alt_text=normalized.alt_text,
            tier=normalized.tier,
        )

    @classmethod
    def failed(cls, error: str) -> "GenerationResult":
        return cls(success=False, error=error or "Unknown error occurred")

    def to_message(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "caption": self.caption,
            "hashtags": self.hashtags,
            "altText": self.alt_text,
        }


@dataclass
class ConnectionStatus:
    success: bool
    status: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        for key in ("status", "error", "message"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class Settings:
    """一次请求使用的不可变配置：存储中的偏好 + 环境配置"""
    api_key: str = ""
    default_tone: str = "casual"
    use_server_proxy: bool = True
    hashtag_count: int = 5
    caption_length: str = "medium"
    proxy_url: str = "http://localhost:3000/api/generate"
    proxy_test_url: str = "http://localhost:3000/api/test"
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    timeout: float = 30.0


@dataclass
class Observation:
    """生命周期状态机的一次观测"""
    active: bool
    surface_present: bool


class EffectKind(str, Enum):
    INSERT = "insert"
    REMOVE = "remove"


@dataclass
class Effect:
    kind: EffectKind
    anchor: Optional[LocatedElement] = None


@dataclass
class SurfacePreferences:
    """注入控制面板时预填的偏好"""
    tone: str = "casual"
    caption_length: str = "medium"
    hashtag_count: int = 5
    tones: Tuple[str, ...] = ("professional", "casual", "funny", "inspirational", "promotional")
    lengths: Tuple[str, ...] = CAPTION_LENGTHS
