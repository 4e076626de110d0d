"""
代理服务器：POST /api/generate 调用 OpenAI，规范化回复并补全标签。

客户端在代理模式下调用这里，API key 只保存在服务端。
"""

import logging
import random
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from pydantic import BaseModel

from .augmenter import augment
from .config import AppConfig
from .normalizer import normalize
from .orchestrator import build_messages

logger = logging.getLogger(__name__)


class GenerateBody(BaseModel):
    prompt: Optional[str] = None
    imageData: Optional[str] = None
    hashtagCount: int = 5


def create_app(config: Optional[AppConfig] = None, client: Optional[AsyncOpenAI] = None,
               rng: Optional[random.Random] = None) -> FastAPI:
    config = config or AppConfig.from_env()
    client = client or AsyncOpenAI(
        api_key=config.openai_api_key,
        base_url=config.base_url,
        timeout=config.request_timeout,
        max_retries=0,
    )

    app = FastAPI(title="Caption Generator Proxy")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/generate")
    async def generate(body: GenerateBody) -> JSONResponse:
        if not body.prompt:
            return JSONResponse({"error": "Prompt is required"}, status_code=400)
        try:
            completion = await client.chat.completions.create(
                model=config.model,
                messages=build_messages(body.prompt, body.imageData),
                max_tokens=800,
                temperature=0.7,
            )
            raw = completion.choices[0].message.content or ""
        except Exception as e:
            logger.error("❌ 调用模型失败: %s", e)
            return JSONResponse(
                {"error": "Error generating caption", "message": str(e)},
                status_code=500,
            )

        result = normalize(raw)
        hashtags = augment(result.caption, result.alt_text, result.hashtags, body.hashtagCount, rng)
        logger.info("✓ 生成完成 (tier=%s, %d hashtags)", result.tier.value, len(hashtags))
        return JSONResponse({
            "caption": result.caption,
            "hashtags": hashtags,
            "altText": result.alt_text,
        })

    @app.post("/api/test")
    async def test() -> dict:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app
