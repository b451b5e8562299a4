"""chart 拉取数据模型

数据类:
- Repository: 仓库配置
- PackageCoordinates: 调用方给出的符号坐标 (仓库 / chart / 版本约束)
- ResolvedKey: 解析后的唯一制品标识，相等性只看 (chart, 精确版本)
- FetchState: 单个制品在协调器中的状态
- ArtifactRecord: 落盘成功后的制品记录
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

from chartgate.core.exceptions import ValidationError


@dataclass(frozen=True)
class Repository:
    """repositories.yaml 中的一条仓库配置"""

    name: str
    url: str
    username: str = ""
    password: str = field(default="", repr=False)
    ca_file: str = ""

    @property
    def authenticated(self) -> bool:
        return bool(self.username)

    def to_dict(self) -> dict[str, str]:
        # 不回显口令
        info = {"name": self.name, "url": self.url}
        if self.username:
            info["username"] = self.username
        return info


@dataclass(frozen=True)
class PackageCoordinates:
    """符号坐标，不可变"""

    repository_name: str
    package_name: str
    version_constraint: str = ""

    @classmethod
    def parse(cls, reference: str, version: str = "") -> PackageCoordinates:
        """解析 "stable/wordpress" 形式的引用"""
        repo, sep, chart = reference.strip().partition("/")
        if not sep or not repo or not chart or "/" in chart:
            raise ValidationError(
                f"chart 引用格式应为 <仓库>/<chart>: {reference!r}"
            )
        return cls(repository_name=repo, package_name=chart,
                   version_constraint=version.strip())

    def __str__(self) -> str:
        ver = self.version_constraint or "latest"
        return f"{self.repository_name}/{self.package_name}@{ver}"


@dataclass(frozen=True)
class ResolvedKey:
    """解析结果，唯一标识一个制品

    相等性与哈希只取 (package_name, exact_version)；
    source_url / repository / digest 是附带信息，不参与比较。
    """

    package_name: str
    exact_version: str
    source_url: str = field(default="", compare=False)
    repository: str = field(default="", compare=False)
    digest: str = field(default="", compare=False)

    @property
    def archive_name(self) -> str:
        return f"{self.package_name}-{self.exact_version}.tgz"

    def __str__(self) -> str:
        return f"{self.package_name}@{self.exact_version}"


class FetchState(enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ArtifactRecord:
    """落盘成功的制品记录，创建后不可变"""

    key: ResolvedKey
    local_path: Path
    size_bytes: int
    content_digest: str

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.key.package_name,
            "version": self.key.exact_version,
            "repository": self.key.repository,
            "path": str(self.local_path),
            "size": self.size_bytes,
            "digest": self.content_digest,
        }
