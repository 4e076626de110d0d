"""Instagram Caption Agent 包

包含各个模块：
- models: 数据模型
- document: 宿主文档抽象（BeautifulSoup 快照）
- perception: 感知模块（元素定位 + 页面状态判断）
- lifecycle: 控制面板生命周期状态机
- controller: 执行模块（实时页面操作）
- normalizer: 模型回复规范化
- orchestrator: 请求编排
- augmenter: 热门标签补全
- storage: 偏好存储
- messaging: 消息边界
- server: 代理服务器
- core: 核心 Agent 类
"""

from .models import (
    ElementCategory,
    GenerationRequest,
    GenerationResult,
    MatchRule,
    NormalizationTier,
    Settings,
    UIState,
)
from .document import SoupDocument
from .perception import ElementLocator, PageStateClassifier, Perception
from .lifecycle import LifecycleController, transition
from .normalizer import normalize
from .orchestrator import RequestOrchestrator
from .augmenter import augment
from .messaging import MessageRouter
from .core import CaptionAgent

__all__ = [
    "ElementCategory",
    "GenerationRequest",
    "GenerationResult",
    "MatchRule",
    "NormalizationTier",
    "Settings",
    "UIState",
    "SoupDocument",
    "ElementLocator",
    "PageStateClassifier",
    "Perception",
    "LifecycleController",
    "transition",
    "normalize",
    "RequestOrchestrator",
    "augment",
    "MessageRouter",
    "CaptionAgent",
]
