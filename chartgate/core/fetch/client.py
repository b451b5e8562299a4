"""chart 拉取客户端 — 对外唯一入口

fetch(坐标) = SourceResolver.resolve → FetchCoordinator.acquire → 本地路径。
自身不持有状态，任一阶段的异常原样抛给调用方；解析失败时不会触达协调器。
"""

from __future__ import annotations

import logging
from pathlib import Path

from chartgate.core.fetch.coordinator import FetchCoordinator
from chartgate.core.fetch.models import ArtifactRecord, PackageCoordinates, ResolvedKey
from chartgate.core.fetch.resolver import SourceResolver

logger = logging.getLogger(__name__)


class PackageClient:
    """组合解析器与协调器"""

    def __init__(self, resolver: SourceResolver, coordinator: FetchCoordinator) -> None:
        self.resolver = resolver
        self.coordinator = coordinator

    def resolve(self, coordinates: PackageCoordinates) -> ResolvedKey:
        return self.resolver.resolve(coordinates)

    def fetch(self, coordinates: PackageCoordinates, retry: bool = False) -> Path:
        """拉取 chart 归档，返回本地路径"""
        key = self.resolver.resolve(coordinates)
        return self.coordinator.acquire(key, retry=retry)

    def fetch_record(self, coordinates: PackageCoordinates, retry: bool = False) -> ArtifactRecord:
        """拉取并返回制品记录（路径 + 大小 + 摘要）"""
        key = self.resolver.resolve(coordinates)
        self.coordinator.acquire(key, retry=retry)
        record = self.coordinator.store.record(key)
        logger.info(
            "chart 就绪: %s -> %s", coordinates, record.local_path,
            extra={"chart": key.package_name, "version": key.exact_version,
                   "repository": key.repository},
        )
        return record
