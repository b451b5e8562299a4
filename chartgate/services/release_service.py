"""Release 服务 — 拉取 chart + 调用部署后端

install / update 先通过 PackageClient 把 chart 归档拉到本地缓存，
再把本地路径交给 ReleaseBackend；list / delete 直接转发。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from chartgate.core.exceptions import ValidationError
from chartgate.core.fetch import PackageClient, PackageCoordinates
from chartgate.core.release import ReleaseBackend, ReleaseOptions

logger = logging.getLogger(__name__)

# Kubernetes DNS-1123 label；helm release 名上限 53
_DNS_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")
MAX_RELEASE_NAME = 53
MAX_NAMESPACE = 63


def validate_release_name(name: str) -> str:
    name = str(name).strip()
    if len(name) > MAX_RELEASE_NAME or not _DNS_LABEL_RE.match(name):
        raise ValidationError(f"release 名称不合法: {name!r}")
    return name


def validate_namespace(namespace: str) -> str:
    namespace = str(namespace).strip()
    if namespace and (len(namespace) > MAX_NAMESPACE or not _DNS_LABEL_RE.match(namespace)):
        raise ValidationError(f"namespace 不合法: {namespace!r}")
    return namespace


@dataclass(frozen=True)
class ChartRequest:
    """install / update 请求体"""

    repo_name: str
    chart_name: str
    version: str = ""
    namespace: str = ""
    release_name: str = ""

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> ChartRequest:
        """解析 {repoName, chartName, version, namespace, releaseName}"""
        fields = {}
        errors = []
        for json_name in ("repoName", "chartName", "version", "namespace", "releaseName"):
            value = body.get(json_name, "")
            if value is None:
                value = ""
            if not isinstance(value, str):
                errors.append(f"{json_name} 应为字符串")
                value = ""
            fields[json_name] = value.strip()
        for required in ("repoName", "chartName"):
            if not fields[required]:
                errors.append(f"需要提供 {required}")
            elif not _SAFE_NAME_RE.match(fields[required]):
                errors.append(f"{required} 包含非法字符: {fields[required]}")
        if errors:
            raise ValidationError("请求参数无效", details=errors)
        return cls(
            repo_name=fields["repoName"],
            chart_name=fields["chartName"],
            version=fields["version"],
            namespace=validate_namespace(fields["namespace"]),
            release_name=(
                validate_release_name(fields["releaseName"]) if fields["releaseName"] else ""
            ),
        )

    @property
    def coordinates(self) -> PackageCoordinates:
        return PackageCoordinates(
            repository_name=self.repo_name,
            package_name=self.chart_name,
            version_constraint=self.version,
        )


class ReleaseService:
    """Release 生命周期入口（拉取 + 部署）"""

    def __init__(self, packages: PackageClient, backend: ReleaseBackend) -> None:
        self.packages = packages
        self.backend = backend

    def install(self, req: ChartRequest, options: ReleaseOptions) -> dict[str, Any]:
        # 每个请求都是调用方的一次显式尝试，上一轮 FAILED 允许重新拉取
        record = self.packages.fetch_record(req.coordinates, retry=True)
        release = self.backend.install(
            record.local_path, req.namespace, req.release_name, options,
        )
        logger.info(
            "release 已安装: %s (%s)", release.get("name", "?"), req.coordinates,
            extra={"release": release.get("name"), "namespace": req.namespace},
        )
        return {"release": release, "chart": record.to_dict()}

    def update(
        self, release_name: str, req: ChartRequest, options: ReleaseOptions,
    ) -> dict[str, Any]:
        release_name = validate_release_name(release_name)
        record = self.packages.fetch_record(req.coordinates, retry=True)
        release = self.backend.upgrade(
            release_name, record.local_path, req.namespace, options,
        )
        logger.info(
            "release 已更新: %s -> %s", release_name, req.coordinates,
            extra={"release": release_name, "namespace": req.namespace},
        )
        return {"release": release, "chart": record.to_dict()}

    def list(self, options: ReleaseOptions) -> dict[str, Any]:
        releases = self.backend.list(options)
        return {"releases": releases, "count": len(releases)}

    def delete(self, release_name: str, options: ReleaseOptions) -> dict[str, Any]:
        release_name = validate_release_name(release_name)
        validate_namespace(options.namespace)
        result = self.backend.uninstall(release_name, options)
        logger.info(
            "release 已删除: %s (purge=%s, dry_run=%s)",
            release_name, options.purge, options.dry_run,
            extra={"release": release_name, "namespace": options.namespace},
        )
        return result
