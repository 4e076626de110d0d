"""
控制面板生命周期：ABSENT / PRESENT 两个状态。

页面变动事件和定时轮询都只往同一个队列里投递 tick，
由单个消费者依次执行 快照 → 判定 → 应用效果，判定本身是幂等的。
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Tuple

from .document import HostDocument
from .errors import CaptionError
from .models import Effect, EffectKind, LocatedElement, Observation, SurfacePreferences, UIState
from .perception import ElementLocator, PageStateClassifier

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0


def transition(state: UIState, observation: Observation) -> Tuple[UIState, List[EffectKind]]:
    """纯函数：(当前状态, 观测) -> (新状态, 需要执行的效果)"""
    if observation.active:
        if observation.surface_present:
            return UIState.PRESENT, []
        return UIState.PRESENT, [EffectKind.INSERT]
    if observation.surface_present or state is UIState.PRESENT:
        return UIState.ABSENT, [EffectKind.REMOVE]
    return UIState.ABSENT, []


class SurfaceRenderer(ABC):
    """控制面板的实际插入/移除"""

    @abstractmethod
    async def insert(self, anchor: LocatedElement, preferences: SurfacePreferences) -> None: ...

    @abstractmethod
    async def remove(self) -> None:
        """移除控制面板以及附带的提示节点"""


class LifecycleController:

    def __init__(self, renderer: Optional[SurfaceRenderer] = None,
                 preferences: Optional[Callable[[], Awaitable[SurfacePreferences]]] = None):
        self.renderer = renderer
        self.preferences = preferences
        self.state = UIState.ABSENT

    def check(self, document: HostDocument) -> List[Effect]:
        """根据快照判定状态迁移，不涉及任何页面修改"""
        locator = ElementLocator(document)
        classifier = PageStateClassifier(locator)
        observation = Observation(
            active=classifier.is_target_surface_active(),
            surface_present=classifier.has_control_surface(),
        )
        new_state, kinds = transition(self.state, observation)

        effects: List[Effect] = []
        for kind in kinds:
            if kind is EffectKind.INSERT:
                anchor = locator.insertion_point()
                if anchor is None:
                    logger.info("找不到插入点，暂不插入控制面板")
                    new_state = UIState.ABSENT
                    continue
                effects.append(Effect(kind, anchor))
            else:
                effects.append(Effect(kind))

        if new_state is not self.state:
            logger.info("控制面板状态: %s → %s", self.state.value, new_state.value)
        self.state = new_state
        return effects

    async def step(self, document: HostDocument) -> List[Effect]:
        effects = self.check(document)
        if self.renderer is None:
            return effects
        for effect in effects:
            try:
                await self._apply(effect)
            except (CaptionError, OSError) as e:
                # 插入失败时回到 ABSENT，下一个 tick 重新判定
                logger.warning("⚠ 应用 %s 失败，等待下一轮: %s", effect.kind.value, e)
                if effect.kind is EffectKind.INSERT:
                    self.state = UIState.ABSENT
        return effects

    async def _apply(self, effect: Effect) -> None:
        if effect.kind is EffectKind.INSERT:
            prefs = await self.preferences() if self.preferences else SurfacePreferences()
            await self.renderer.insert(effect.anchor, prefs)
            logger.info("✓ 控制面板已插入 (anchor=%s)", effect.anchor.rule.describe())
        else:
            await self.renderer.remove()
            logger.info("✓ 控制面板已移除")


class TickQueue:
    """两个驱动源共用的事件队列，积压的 tick 会被合并"""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def notify(self, source: str = "poll") -> None:
        self._queue.put_nowait(source)

    async def next(self) -> List[str]:
        sources = [await self._queue.get()]
        while not self._queue.empty():
            sources.append(self._queue.get_nowait())
        return sources


async def poll_driver(ticks: TickQueue, interval: float = POLL_INTERVAL) -> None:
    """定时兜底，覆盖 MutationObserver 可能漏掉的变化"""
    while True:
        ticks.notify("poll")
        await asyncio.sleep(interval)


async def run_lifecycle(ticks: TickQueue, controller: LifecycleController,
                        snapshot: Callable[[], Awaitable[Optional[HostDocument]]]) -> None:
    """唯一的消费者：逐个处理 tick。快照失败（例如页面正在跳转）时跳过本轮。"""
    while True:
        sources = await ticks.next()
        logger.debug("tick from %s", ",".join(sorted(set(sources))))
        document = await snapshot()
        if document is None:
            continue
        await controller.step(document)
