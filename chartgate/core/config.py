"""集中配置管理

网关启动时构造一次 Config，显式传给 ServiceContainer / PackageClient，
不使用进程级全局单例。支持从 YAML 文件加载 + 编程式覆盖。

目录布局（与 helm home 一致）:
  <home>/repository/repositories.yaml   仓库清单
  <home>/repository/cache/<repo>-index.yaml   仓库索引缓存
  <home>/cache/archive/<chart>-<version>.tgz  chart 归档缓存
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

from chartgate.core.exceptions import ConfigError
from chartgate.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 已实现的拉取后端
SUPPORTED_GETTERS = ("http", "https")

CONFIG_ENV = "CHARTGATE_CONFIG"


@dataclass
class Config:
    """网关配置"""

    # 目录
    home: str = ".chartgate"

    # 拉取
    fetch_timeout: float = 300.0
    getters: list[str] = field(default_factory=lambda: list(SUPPORTED_GETTERS))

    # helm 后端
    helm_bin: str = "helm"
    kube_context: str = ""
    kubeconfig: str = ""

    # 服务
    host: str = "0.0.0.0"
    port: int = 8080

    # 日志
    log_level: str = "INFO"
    log_json: bool = False

    # 放不到字段里的配置项
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        unsupported = [g for g in self.getters if g not in SUPPORTED_GETTERS]
        if unsupported:
            raise ConfigError(
                f"不支持的拉取后端: {unsupported}，可用: {list(SUPPORTED_GETTERS)}"
            )
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout 必须为正数: {self.fetch_timeout}")

    # ---- 派生路径 ----

    @property
    def home_path(self) -> Path:
        return Path(self.home).expanduser()

    @property
    def repositories_file(self) -> Path:
        return self.home_path / "repository" / "repositories.yaml"

    @property
    def index_cache_dir(self) -> Path:
        return self.home_path / "repository" / "cache"

    @property
    def archive_dir(self) -> Path:
        return self.home_path / "cache" / "archive"

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 文件加载配置，文件不存在则返回默认值"""
        data = load_yaml(path)
        if not data:
            logger.info("配置文件不存在或为空，使用默认配置: %s", path)
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path}: {e}") from e
        cfg.extra = extra
        logger.info("配置已加载: %s", path)
        return cfg

    @classmethod
    def from_env(cls) -> Config:
        """按 CHARTGATE_CONFIG 环境变量加载（gunicorn 工厂入口使用）"""
        path = os.getenv(CONFIG_ENV, "")
        return cls.from_file(path) if path else cls()

    def to_dict(self) -> dict:
        return asdict(self)
