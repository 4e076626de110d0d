import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from caption_agent.lifecycle import SurfaceRenderer


def dialog_page(caption_input: bool = True, image: bool = False, surface: bool = False,
                extra: str = "") -> str:
    """合成的 Instagram 发帖对话框"""
    textarea = '<textarea aria-label="Write a caption..." data-cg-id="20"></textarea>' if caption_input else ""
    img = '<img style="object-fit: cover" src="data:image/jpeg;base64,AAAA" data-cg-id="30">' if image else ""
    ui = '<div id="caption-generator-ui"></div>' if surface else ""
    return f"""
    <html><body>
      <nav><img src="/logo.png"></nav>
      <div role="dialog" data-cg-id="1">
        <form data-cg-id="2">
          <div class="caption-block" data-cg-id="10"><div data-cg-id="11"><div data-cg-id="12">
            {textarea}
          </div></div></div>
          {ui}
          {img}
        </form>
      </div>
      {extra}
    </body></html>
    """


def plain_page(extra: str = "") -> str:
    return f"<html><body><main><p>feed</p>{extra}</main></body></html>"


class FakeRenderer(SurfaceRenderer):

    def __init__(self):
        self.inserted: List[Any] = []
        self.removed = 0
        self.present = False

    async def insert(self, anchor, preferences) -> None:
        self.inserted.append((anchor, preferences))
        self.present = True

    async def remove(self) -> None:
        self.removed += 1
        self.present = False


def completion(content: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeCompletions:

    def __init__(self, content: str = "", error: Optional[Exception] = None, delay: float = 0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return completion(self.content)


class FakeModels:

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.with_raw_response = self

    async def list(self):
        return SimpleNamespace(status_code=self.status_code)


class FakeOpenAI:
    """只实现用到的 chat.completions.create 与 models.with_raw_response.list"""

    def __init__(self, content: str = "", error: Optional[Exception] = None, delay: float = 0,
                 status_code: int = 200):
        self.chat = SimpleNamespace(completions=FakeCompletions(content, error, delay))
        self.models = FakeModels(status_code)

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return self.chat.completions.calls
