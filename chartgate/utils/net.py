"""网络工具 — URL 安全校验"""

from __future__ import annotations

from urllib.parse import urljoin, urlparse

from chartgate.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def url_scheme(url: str) -> str:
    return urlparse(url).scheme.lower()


def validate_url_scheme(
    url: str, *, context: str = "", allowed: frozenset[str] = _ALLOWED_SCHEMES,
) -> None:
    """校验 URL 仅使用白名单内协议，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    scheme = url_scheme(url)
    if scheme not in allowed:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{scheme}'{label}，"
            f"仅支持 {'/'.join(sorted(allowed))}: {url}"
        )


def join_url(base: str, ref: str) -> str:
    """索引里的相对地址拼接到仓库地址上；绝对地址原样返回"""
    if urlparse(ref).scheme:
        return ref
    return urljoin(base.rstrip("/") + "/", ref)
