"""chart 拉取缓存

拆分说明:
- models.py: 数据模型
- store.py: 本地归档库（原子写入）
- getters.py: 按协议的拉取后端
- resolver.py: 坐标 → 精确版本解析
- coordinator.py: 单飞拉取协调
- client.py: 对外入口 PackageClient
"""

from chartgate.core.fetch.client import PackageClient
from chartgate.core.fetch.coordinator import FetchCoordinator
from chartgate.core.fetch.getters import Getter, GetterRegistry, HttpGetter, build_getters
from chartgate.core.fetch.models import (
    ArtifactRecord,
    FetchState,
    PackageCoordinates,
    Repository,
    ResolvedKey,
)
from chartgate.core.fetch.resolver import SourceResolver
from chartgate.core.fetch.store import ArtifactStore

__all__ = [
    "ArtifactRecord",
    "ArtifactStore",
    "FetchCoordinator",
    "FetchState",
    "Getter",
    "GetterRegistry",
    "HttpGetter",
    "PackageClient",
    "PackageCoordinates",
    "Repository",
    "ResolvedKey",
    "SourceResolver",
    "build_getters",
]
