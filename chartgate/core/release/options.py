"""Release 操作选项

一个平铺的配置结构替代 helm 客户端的可变参数选项列表，
install / upgrade / list / delete 共用，各操作只读取与自己相关的字段。

字段与默认值:
  dry_run=False          只模拟，不真正变更集群
  disable_hooks=False    跳过 chart hooks
  purge=False            删除时连同历史记录一起清除（否则保留历史）
  timeout_seconds=300    单个 Kubernetes 操作的等待上限
  sort_by="name"         列表排序字段: name | last_released
  sort_order="asc"       列表排序方向: asc | desc
  limit=256              列表最大条数
  offset=0               列表起始偏移
  filter=""              release 名称正则过滤
  namespace=""           命名空间；列表时为空表示全部命名空间
  status_filter=(deployed, failed)  列表状态过滤
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from chartgate.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "last_released")
SORT_ORDERS = ("asc", "desc")
STATUS_CODES = ("deployed", "deleted", "deleting", "failed", "superseded", "pending")
DEFAULT_STATUSES = ("deployed", "failed")
DEFAULT_LIMIT = 256
DEFAULT_TIMEOUT = 300


def parse_status_filter(value: str) -> tuple[str, ...]:
    """解析逗号分隔的状态过滤

    "all" 表示全部状态；未知状态名忽略；空串或全部未知时返回默认 (deployed, failed)。
    """
    value = value.strip()
    if not value:
        return DEFAULT_STATUSES
    if value == "all":
        return ("all",)
    codes = [c.strip() for c in value.split(",") if c.strip()]
    unknown = [c for c in codes if c not in STATUS_CODES]
    if unknown:
        logger.warning("忽略未知的 release 状态: %s", unknown)
    known = tuple(c for c in STATUS_CODES if c in codes)
    if not known:
        logger.warning("状态过滤 %r 中没有可识别的状态，使用默认 %s", value, DEFAULT_STATUSES)
        return DEFAULT_STATUSES
    return known


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ReleaseOptions:
    dry_run: bool = False
    disable_hooks: bool = False
    purge: bool = False
    timeout_seconds: int = DEFAULT_TIMEOUT
    sort_by: str = "name"
    sort_order: str = "asc"
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    filter: str = ""
    namespace: str = ""
    status_filter: tuple[str, ...] = DEFAULT_STATUSES

    def __post_init__(self) -> None:
        errors = []
        if self.sort_by not in SORT_FIELDS:
            errors.append(f"sort_by 取值应为 {SORT_FIELDS}: {self.sort_by}")
        if self.sort_order not in SORT_ORDERS:
            errors.append(f"sort_order 取值应为 {SORT_ORDERS}: {self.sort_order}")
        if self.limit < 0 or self.offset < 0:
            errors.append("limit / offset 不能为负数")
        if self.timeout_seconds <= 0:
            errors.append(f"timeout 必须为正数: {self.timeout_seconds}")
        if not self.status_filter:
            errors.append("status_filter 不能为空")
        bad = [s for s in self.status_filter if s not in (*STATUS_CODES, "all")]
        if bad:
            errors.append(f"未知的 release 状态: {bad}")
        if errors:
            raise ValidationError("release 选项无效", details=errors)

    @property
    def all_statuses(self) -> bool:
        return "all" in self.status_filter

    @classmethod
    def from_query(cls, args: Mapping[str, str]) -> ReleaseOptions:
        """从列表查询参数构造（宽松解析，非法值回退默认）

        sort_by / sort_ord / limit / offset / filter / status / namespace
        """
        return cls(
            sort_by="last_released" if args.get("sort_by") == "last_released" else "name",
            sort_order="desc" if args.get("sort_ord") == "desc" else "asc",
            limit=max(0, _as_int(args.get("limit"), DEFAULT_LIMIT)),
            offset=max(0, _as_int(args.get("offset"), 0)),
            filter=args.get("filter", "") or "",
            namespace=args.get("namespace", "") or "",
            status_filter=parse_status_filter(args.get("status", "") or ""),
        )

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> ReleaseOptions:
        """从 JSON 请求体构造（dryRun / disableHooks / purge / timeout / namespace）"""
        errors = []
        flags: dict[str, bool] = {}
        for json_name, attr in (
            ("dryRun", "dry_run"), ("disableHooks", "disable_hooks"), ("purge", "purge"),
        ):
            value = body.get(json_name, False)
            if not isinstance(value, bool):
                errors.append(f"{json_name} 应为布尔值")
            flags[attr] = bool(value)

        timeout = body.get("timeout") or DEFAULT_TIMEOUT
        if isinstance(timeout, bool) or not isinstance(timeout, int):
            errors.append("timeout 应为整数秒")
            timeout = DEFAULT_TIMEOUT

        namespace = body.get("namespace") or ""
        if not isinstance(namespace, str):
            errors.append("namespace 应为字符串")
            namespace = ""
        if errors:
            raise ValidationError("请求参数无效", details=errors)
        return cls(timeout_seconds=timeout, namespace=namespace, **flags)
