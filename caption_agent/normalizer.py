"""
模型回复规范化：把任意文本转换为 caption / hashtags / alt text。

按顺序尝试四个层级，前一层失败才进入下一层：
  1. STRUCTURED          整段文本就是 JSON 对象
  2. EXTRACTED           文本中第一个 { 到最后一个 } 之间是 JSON 对象
  3. FALLBACK_EXTRACTED  找到了花括号但解析失败，转入标签切分
  4. HEURISTIC           没有花括号，直接按 "caption:" 等标签切分

任何输入都不会抛出异常，提取不到的字段使用占位文本。
客户端和代理服务器共用这一个函数。
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from .models import NormalizationTier, NormalizedCaption

logger = logging.getLogger(__name__)

NO_CAPTION = "No caption generated"
NO_ALT_TEXT = "No alt text generated"

_BRACED = re.compile(r"\{.*\}", re.S)
_HASHTAG = re.compile(r"#(\w+)")
_LABEL = re.compile(r"(?P<caption>caption)\s*:|(?P<hashtags>hashtags)\s*:|(?P<alt>alt[\s_-]?text)\s*:", re.I)


def strip_hash(tag: Any) -> str:
    return str(tag).strip().lstrip("#").strip()


def format_hashtags(tags: Iterable[str]) -> str:
    """展示用：每个标签恰好一个 #"""
    return " ".join(f"#{strip_hash(t)}" for t in tags if strip_hash(t))


def compose_caption(caption: str, tags: Iterable[str]) -> str:
    hashtag_text = format_hashtags(tags)
    if not hashtag_text:
        return caption
    return f"{caption}\n\n{hashtag_text}"


def normalize(raw: Optional[str]) -> NormalizedCaption:
    text = raw or ""

    data = _load_object(text)
    if data is not None:
        return _from_object(data, NormalizationTier.STRUCTURED)

    match = _BRACED.search(text)
    if match:
        data = _load_object(match.group(0))
        if data is not None:
            return _from_object(data, NormalizationTier.EXTRACTED)
        tier = NormalizationTier.FALLBACK_EXTRACTED
    else:
        tier = NormalizationTier.HEURISTIC

    logger.warning("⚠ 模型回复不是有效 JSON，使用文本切分 (tier=%s)", tier.value)
    return segment_labels(text, tier)


def segment_labels(text: str, tier: NormalizationTier = NormalizationTier.HEURISTIC) -> NormalizedCaption:
    """
    按标签切分文本。每段从标签后开始，到下一个已知标签或文本末尾结束。
    同一标签出现多次时取第一次。正文里出现 "hashtags:" 之类的字样同样会被当成标签。
    """
    sections: Dict[str, str] = {}
    labels = list(_LABEL.finditer(text))
    for i, m in enumerate(labels):
        end = labels[i + 1].start() if i + 1 < len(labels) else len(text)
        sections.setdefault(m.lastgroup, text[m.end():end])

    caption = _clean(sections.get("caption", "")) or NO_CAPTION
    alt_text = _clean(sections.get("alt", "")) or NO_ALT_TEXT

    hashtags: List[str] = []
    if "hashtags" in sections:
        hashtags = _HASHTAG.findall(sections["hashtags"])
    if not hashtags:
        hashtags = _HASHTAG.findall(text)

    return NormalizedCaption(caption=caption, hashtags=hashtags, alt_text=alt_text, tier=tier)


def normalize_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = re.split(r"[\s,]+", value)
    elif not isinstance(value, (list, tuple)):
        value = [value]
    return [t for t in (strip_hash(v) for v in value if v is not None) if t]


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _from_object(data: Dict[str, Any], tier: NormalizationTier) -> NormalizedCaption:
    caption = data.get("caption")
    alt_text = data.get("altText", data.get("alt_text"))
    return NormalizedCaption(
        caption=str(caption) if caption not in (None, "") else NO_CAPTION,
        hashtags=normalize_tags(data.get("hashtags")),
        alt_text=str(alt_text) if alt_text not in (None, "") else NO_ALT_TEXT,
        tier=tier,
    )


def _clean(section: str) -> str:
    return section.strip().strip("*").strip()
