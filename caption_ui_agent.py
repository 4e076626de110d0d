import asyncio
import sys
from typing import Optional

from caption_agent import CaptionAgent
from caption_agent.config import AppConfig, setup_logging
from caption_agent.storage import JsonPreferenceStore


async def main(start_url: Optional[str] = None) -> None:
    """
    启动浏览器，打开 Instagram，等待用户进入发帖界面。
    """
    config = AppConfig.from_env()
    setup_logging(config.log_level)
    store = JsonPreferenceStore(config.store_path)
    agent = CaptionAgent(config, store)
    await agent.run(start_url)


if __name__ == "__main__":
    # 可选参数：起始网址，默认读取 CAPTION_START_URL
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
