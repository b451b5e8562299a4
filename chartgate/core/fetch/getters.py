"""拉取后端 (getter)

每种 URL 协议对应一个 Getter 实现，启用哪些由配置决定，
需要认证的仓库额外注册专属 getter（带凭据 / CA 证书）。
协调器只通过 GetterRegistry.for_url() 取用，不感知具体实现。
"""

from __future__ import annotations

import base64
import http.client
import logging
import ssl
import time
import urllib.error
import urllib.request
from typing import Protocol

from chartgate import __version__
from chartgate.core.exceptions import FetchTimeout, NetworkError
from chartgate.core.fetch.models import Repository
from chartgate.utils.net import url_scheme, validate_url_scheme

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024
USER_AGENT = f"chartgate/{__version__}"


def _content_length(resp) -> int | None:
    value = resp.headers.get("Content-Length") if resp.headers is not None else None
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class Getter(Protocol):
    """拉取后端协议"""

    def get(self, url: str, *, timeout: float) -> bytes:
        """拉取 url 的完整内容

        Raises:
            FetchTimeout: 超过 timeout 秒仍未完成
            NetworkError: 其他网络失败
        """
        ...


class HttpGetter:
    """HTTP/HTTPS 拉取后端，可选 basic auth 与自定义 CA"""

    def __init__(self, username: str = "", password: str = "", ca_file: str = "") -> None:
        self.username = username
        self.password = password
        self.ca_file = ca_file

    def _request(self, url: str) -> urllib.request.Request:
        headers = {"User-Agent": USER_AGENT}
        if self.username:
            token = base64.b64encode(
                f"{self.username}:{self.password}".encode()
            ).decode("ascii")
            headers["Authorization"] = f"Basic {token}"
        return urllib.request.Request(url, headers=headers)

    def get(self, url: str, *, timeout: float) -> bytes:
        validate_url_scheme(url, context="chart download")
        deadline = time.monotonic() + timeout
        context = ssl.create_default_context(cafile=self.ca_file) if self.ca_file else None
        chunks: list[bytes] = []
        try:
            with urllib.request.urlopen(  # nosec B310 - scheme 已校验
                self._request(url), timeout=timeout, context=context,
            ) as resp:
                expected = _content_length(resp)
                while True:
                    if time.monotonic() > deadline:
                        raise FetchTimeout(f"下载超时 ({timeout:g}s): {url}")
                    chunk = resp.read(_CHUNK)
                    if not chunk:
                        break
                    chunks.append(chunk)
                received = sum(len(c) for c in chunks)
                if expected is not None and received != expected:
                    raise NetworkError(
                        f"下载不完整: {url} - 收到 {received} 字节, 应为 {expected} 字节"
                    )
        except urllib.error.HTTPError as e:
            raise NetworkError(f"下载失败: {url} - HTTP {e.code} {e.reason}") from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise FetchTimeout(f"下载超时 ({timeout:g}s): {url}") from e
            raise NetworkError(f"下载失败: {url} - {e.reason}") from e
        except TimeoutError as e:
            raise FetchTimeout(f"下载超时 ({timeout:g}s): {url}") from e
        except http.client.HTTPException as e:
            # 分块传输中途断开时抛 IncompleteRead
            raise NetworkError(f"下载失败: {url} - {e!r}") from e
        except OSError as e:
            raise NetworkError(f"下载失败: {url} - {e}") from e
        return b"".join(chunks)


class GetterRegistry:
    """协议 → getter 映射，附带按仓库名的覆盖项"""

    def __init__(self, providers: dict[str, Getter] | None = None) -> None:
        self._providers: dict[str, Getter] = dict(providers or {})
        self._by_repository: dict[str, Getter] = {}

    def register(self, scheme: str, getter: Getter) -> None:
        self._providers[scheme.lower()] = getter

    def register_for_repository(self, repository: str, getter: Getter) -> None:
        self._by_repository[repository] = getter

    @property
    def schemes(self) -> list[str]:
        return sorted(self._providers)

    def supports(self, url: str) -> bool:
        return url_scheme(url) in self._providers

    def for_url(self, url: str, repository: str = "") -> Getter:
        """选择拉取 url 的 getter，仓库专属 getter 优先

        Raises:
            NetworkError: 没有启用该协议的后端
        """
        if repository and repository in self._by_repository and self.supports(url):
            return self._by_repository[repository]
        getter = self._providers.get(url_scheme(url))
        if getter is None:
            raise NetworkError(
                f"没有可用的拉取后端: {url}，已启用协议: {self.schemes}"
            )
        return getter


def build_getters(enabled: list[str], repositories: list[Repository]) -> GetterRegistry:
    """按配置启用的协议和仓库凭据构造 GetterRegistry"""
    registry = GetterRegistry()
    plain = HttpGetter()
    for scheme in enabled:
        registry.register(scheme, plain)
    for repo in repositories:
        if repo.authenticated or repo.ca_file:
            registry.register_for_repository(
                repo.name,
                HttpGetter(username=repo.username, password=repo.password,
                           ca_file=repo.ca_file),
            )
            logger.debug("仓库 %s 使用独立 getter (认证/CA)", repo.name)
    return registry
