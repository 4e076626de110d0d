"""错误类型"""

from typing import List


class CaptionError(Exception):
    """所有可转换为 {success: False, error} 的错误的基类"""


class CredentialMissing(CaptionError):
    def __init__(self, message: str = "OpenAI API key is missing. Please add it in the extension settings."):
        super().__init__(message)


class RequestTimeout(CaptionError):
    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"API request timed out after {seconds:g} seconds")


class UpstreamHTTPError(CaptionError):
    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body or "No error details available"
        super().__init__(f"API error ({status}): {self.body[:100]}")


class LocatorMiss(CaptionError):
    """必需的元素类别在当前页面上没有匹配"""

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Could not find {category} on the page")


class RenderError(CaptionError):
    """页面操作失败，例如跳转过程中执行上下文已销毁"""


class RuleError(Exception):
    """规则格式错误或不被支持，定位器会捕获并跳过"""


CONNECTIVITY_HINTS = [
    "Check your API key in extension settings",
    "Verify your internet connection",
    "Make sure the API endpoint is correct",
]


def remediation_hints(error: str) -> List[str]:
    """连接类错误返回可操作的排查建议，其余错误返回空列表"""
    lowered = (error or "").lower()
    if "api key" in lowered:
        return [CONNECTIVITY_HINTS[0]]
    markers = ("timed out", "api error", "connect", "network", "unreachable")
    if any(m in lowered for m in markers):
        return list(CONNECTIVITY_HINTS)
    return []
