"""热门标签补全：模型给的标签不够时，从静态分类表里随机补齐"""

import logging
import random
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "lifestyle"

# 分类名按声明顺序匹配，第一个命中的分类生效
TRENDING_HASHTAGS: Dict[str, List[str]] = {
    "travel": ["wanderlust", "travelgram", "exploremore", "travelinspo", "travelphotography"],
    "food": ["foodie", "foodporn", "instafood", "foodstagram", "eeeeeats"],
    "fashion": ["ootd", "fashionista", "styleinspo", "fashiongram", "lookoftheday"],
    "fitness": ["fitfam", "workout", "fitness", "gym", "fitnessmotivation"],
    "beauty": ["makeuplover", "skincare", "beautycare", "glam", "beautytips"],
    "lifestyle": ["lifestyle", "dailylife", "instagood", "photooftheday", "lifeisbeautiful"],
    "business": ["entrepreneur", "smallbusiness", "business", "success", "motivation"],
    "technology": ["tech", "innovation", "digital", "programming", "developer"],
    "art": ["artist", "artwork", "creative", "instaart", "artistsoninstagram"],
    "nature": ["nature", "outdoors", "naturephotography", "mountains", "oceanviews"],
}

if DEFAULT_CATEGORY not in TRENDING_HASHTAGS:
    raise RuntimeError(f"trending hashtag table is missing the default category {DEFAULT_CATEGORY!r}")


def detect_category(text: str) -> str:
    content = (text or "").lower()
    for category in TRENDING_HASHTAGS:
        if category in content:
            return category
    return DEFAULT_CATEGORY


def pick_trending(category: str, count: int, rng: Optional[random.Random] = None) -> List[str]:
    """从分类标签池中随机抽取 count 个（打乱顺序）"""
    pool = TRENDING_HASHTAGS.get(category, TRENDING_HASHTAGS[DEFAULT_CATEGORY])
    rng = rng or random.Random()
    return rng.sample(pool, min(max(count, 0), len(pool)))


def augment(caption: str, alt_text: str, current_tags: Sequence[str], desired_count: int,
            rng: Optional[random.Random] = None) -> List[str]:
    desired_count = max(0, desired_count)
    tags = list(current_tags)
    if len(tags) >= desired_count:
        return tags[:desired_count]

    category = detect_category(f"{caption} {alt_text}")
    extra = pick_trending(category, desired_count - len(tags), rng)
    logger.info("补充 %d 个热门标签 (category=%s)", len(extra), category)
    return (tags + extra)[:desired_count]
