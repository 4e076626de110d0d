"""请求编排：组装生成请求，选择代理或直连后端，把回复交给规范化模块"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .errors import CaptionError, CredentialMissing, RequestTimeout, UpstreamHTTPError
from .models import (
    CAPTION_LENGTHS,
    ConnectionStatus,
    GenerationRequest,
    GenerationResult,
    Settings,
    clamp_hashtag_count,
)
from .normalizer import normalize

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert Instagram caption writer who helps creators craft engaging, "
    "on-brand captions with relevant hashtags."
)

LENGTH_GUIDE = "short: 1-2 sentences, medium: 3-4 sentences, long: 5+ sentences"


def default_client_factory(settings: Settings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_retries=0,
    )


def resolve_options(request: GenerationRequest, settings: Settings) -> GenerationRequest:
    """调用方提供的非空值优先，否则使用存储中的默认值"""
    length = request.caption_length or settings.caption_length
    if length not in CAPTION_LENGTHS:
        length = settings.caption_length
    count = request.hashtag_count if request.hashtag_count is not None else settings.hashtag_count
    return GenerationRequest(
        tone=request.tone or settings.default_tone,
        caption_length=length,
        hashtag_count=clamp_hashtag_count(count),
        user_prompt=request.user_prompt or "",
        image_data=request.image_data or None,
        image_description=request.image_description or "",
    )


def build_prompt(request: GenerationRequest) -> str:
    return (
        "Generate an Instagram caption for an image with the following description: "
        f"\"{request.image_description or 'No description provided'}\".\n"
        f"Additional context: \"{request.user_prompt}\".\n"
        f"Tone: {request.tone}\n"
        f"Caption length: {request.caption_length} ({LENGTH_GUIDE})\n"
        f"Include {request.hashtag_count} relevant hashtags.\n"
        "Also generate accessibility-focused alt text for the image.\n"
        "Format the response as JSON with keys: caption, hashtags (as array), altText"
    )


def build_messages(prompt: str, image_data: Optional[str]) -> List[Dict[str, Any]]:
    """system 指令 + 文本与可选图片组成的 user 消息"""
    content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
    if image_data:
        content.append({"type": "image_url", "image_url": {"url": image_data, "detail": "low"}})
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


class RequestOrchestrator:
    """
    请求编排器。所有网络与凭据错误都会转换为 {success: False, error}，
    不会把底层异常抛给调用方，也不会自动重试。
    """

    def __init__(self, client_factory: Optional[Callable[[Settings], AsyncOpenAI]] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_factory = client_factory or default_client_factory
        self.transport = transport

    async def generate(self, request: GenerationRequest, settings: Settings) -> GenerationResult:
        options = resolve_options(request, settings)
        backend = "proxy" if settings.use_server_proxy else "direct"
        logger.info(
            "生成请求: backend=%s tone=%s length=%s hashtags=%d image=%s",
            backend, options.tone, options.caption_length, options.hashtag_count, bool(options.image_data),
        )

        try:
            if settings.use_server_proxy:
                raw = await self._guarded(self._call_proxy(options, settings), settings)
            else:
                if not settings.api_key:
                    raise CredentialMissing()
                raw = await self._guarded(self._call_direct(options, settings), settings)
        except CaptionError as e:
            logger.error("❌ 生成失败: %s", e)
            return GenerationResult.failed(str(e))

        normalized = normalize(raw)
        logger.info("✓ 生成成功 (tier=%s, %d hashtags)", normalized.tier.value, len(normalized.hashtags))
        return GenerationResult.succeeded(normalized)

    async def test_connection(self, settings: Settings) -> ConnectionStatus:
        """只检查凭据与连通性，不触发生成"""
        try:
            if settings.use_server_proxy:
                status = await self._guarded(self._probe_proxy(settings), settings)
            else:
                if not settings.api_key:
                    raise CredentialMissing()
                status = await self._guarded(self._probe_direct(settings), settings)
        except UpstreamHTTPError as e:
            logger.error("❌ 连接测试失败: %s", e)
            return ConnectionStatus(success=False, status=e.status, error=str(e))
        except CaptionError as e:
            logger.error("❌ 连接测试失败: %s", e)
            return ConnectionStatus(success=False, error=str(e))
        logger.info("✓ 连接测试成功 (status=%s)", status)
        return ConnectionStatus(success=True, status=status, message="Connection successful")

    async def _guarded(self, call: Awaitable[Any], settings: Settings) -> Any:
        """统一超时与异常转换"""
        try:
            return await asyncio.wait_for(call, timeout=settings.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException, openai.APITimeoutError) as e:
            raise RequestTimeout(settings.timeout) from e
        except openai.APIStatusError as e:
            raise UpstreamHTTPError(e.status_code, e.response.text) from e
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, openai.APIError) as e:
            raise CaptionError(str(e) or e.__class__.__name__) from e
        except (KeyError, IndexError, AttributeError) as e:
            raise CaptionError("Unexpected response format from API") from e

    async def _call_proxy(self, options: GenerationRequest, settings: Settings) -> str:
        payload: Dict[str, Any] = {
            "prompt": build_prompt(options),
            "hashtagCount": options.hashtag_count,
        }
        if options.image_data:
            payload["imageData"] = options.image_data
        async with httpx.AsyncClient(timeout=settings.timeout, transport=self.transport) as http:
            response = await http.post(settings.proxy_url, json=payload)
        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, response.text)
        return response.text

    async def _call_direct(self, options: GenerationRequest, settings: Settings) -> str:
        client = self.client_factory(settings)
        completion = await client.chat.completions.create(
            model=settings.model,
            messages=build_messages(build_prompt(options), options.image_data),
            max_tokens=500,
        )
        return completion.choices[0].message.content or ""

    async def _probe_proxy(self, settings: Settings) -> int:
        async with httpx.AsyncClient(timeout=settings.timeout, transport=self.transport) as http:
            response = await http.post(settings.proxy_test_url, json={"test": True})
        if not response.is_success:
            raise UpstreamHTTPError(response.status_code, response.text)
        return response.status_code

    async def _probe_direct(self, settings: Settings) -> int:
        client = self.client_factory(settings)
        raw = await client.models.with_raw_response.list()
        return raw.status_code
