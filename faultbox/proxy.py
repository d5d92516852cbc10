"""
代理转发模块 - 将 POST 请求体中的 host/path 转为一次上游 GET
"""
import json
import time
import logging
from dataclasses import dataclass
from threading import Thread, Event
from typing import Any, Dict, Optional

import requests

from .config import Config

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    """代理转发错误，携带返回给调用方的状态码"""
    status_code = 500


class MethodNotAllowed(ProxyError):
    status_code = 405


class MalformedBody(ProxyError):
    """请求体不是 string -> string 的 JSON 对象"""


class UpstreamError(ProxyError):
    """上游连接或读取失败"""


@dataclass(frozen=True)
class ProxyRequest:
    host: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class ProxyResult:
    status_code: int
    body: bytes


def parse_proxy_request(body: bytes) -> ProxyRequest:
    """解析请求体，空请求体视为 {}"""
    if not body or not body.strip():
        return ProxyRequest()

    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedBody(str(e)) from e

    if not isinstance(data, dict):
        raise MalformedBody(f"expected a JSON object, got {type(data).__name__}")
    for key, value in data.items():
        # null 等同于未提供该字段
        if value is not None and not isinstance(value, str):
            raise MalformedBody(f"value of '{key}' must be a string, got {type(value).__name__}")

    return ProxyRequest(host=data.get("host"), path=data.get("path"))


def build_target_url(host: str, path: str) -> str:
    """拼接上游地址：去掉 host 末尾一个 '/' 和 path 开头一个 '/'"""
    if host.endswith("/"):
        host = host[:-1]
    if path.startswith("/"):
        path = path[1:]
    return f"{host}/{path}"


class ProxyForwarder:
    """代理转发器，每次调用只发起一次 GET，不重试"""

    def __init__(self, config: Config, session: requests.Session = None):
        # 未指定 session 时直接使用 requests.get
        self.config = config
        self.session = session or requests

    def resolve_target(self, request: ProxyRequest) -> str:
        host = request.host or self.config.proxy.default_host
        path = request.path or self.config.proxy.default_path
        return build_target_url(host, path)

    def _download(self, url: str, timeout: int, cancelled: Event, outcome: Dict[str, Any]):
        try:
            response = self.session.get(url, timeout=timeout, stream=True)
            try:
                # 忽略上游状态码和响应头，只转发响应体
                chunks = []
                for chunk in response.iter_content(chunk_size=8192):
                    if cancelled.is_set():
                        return
                    chunks.append(chunk)
                outcome["content"] = b"".join(chunks)
            finally:
                response.close()
        except requests.RequestException as e:
            outcome["error"] = e

    def fetch(self, url: str) -> bytes:
        """
        GET 上游并读取完整响应体

        request_timeout_seconds 是整个调用（连接 + 读取响应体）的截止时间，
        上游逐字节慢速发送时同样会超时。
        """
        timeout = self.config.proxy.request_timeout_seconds
        logger.info(f"转发请求: GET {url} (timeout={timeout}s)")

        outcome: Dict[str, Any] = {}
        cancelled = Event()
        worker = Thread(
            target=self._download,
            args=(url, timeout, cancelled, outcome),
            name="proxy-fetch",
            daemon=True
        )
        started = time.monotonic()
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            # 读取线程在下一个数据块到达或单次读取超时后自行结束
            cancelled.set()
            raise UpstreamError(f"upstream did not complete within {timeout}s: {url}")
        if "error" in outcome:
            raise UpstreamError(str(outcome["error"])) from outcome["error"]
        if "content" not in outcome:
            raise UpstreamError(f"upstream request failed: {url}")

        logger.debug(f"上游耗时 {time.monotonic() - started:.3f}s: {url}")
        return outcome["content"]

    def forward(self, method: str, body: bytes) -> ProxyResult:
        """处理一次代理请求，所有错误在此转换为 ProxyResult"""
        try:
            if method.upper() != "POST":
                raise MethodNotAllowed("Method not allowed")
            request = parse_proxy_request(body)
            url = self.resolve_target(request)
            content = self.fetch(url)
        except ProxyError as e:
            logger.error(f"代理失败 [{type(e).__name__}]: {e}")
            return ProxyResult(status_code=e.status_code, body=str(e).encode("utf-8"))

        logger.info(f"上游响应: {url} ({len(content)} bytes)")
        return ProxyResult(status_code=200, body=content)
