"""服务容器 — 统一依赖注入

启动时用 Config 构造一次，CLI 和 Web 层都从同一个容器取服务，
同一容器内的实例共享状态（协调器的单飞表、解析器的索引缓存等）。

依赖关系图（→ 表示依赖）:
  releases    → packages, backend
  packages    → resolver, coordinator
  coordinator → store, getters
  resolver    → getters
  getters     → 仓库清单（凭据）

用法:
    cfg = Config.from_file("chartgate.yml")
    container = ServiceContainer(cfg)
    path = container.packages.fetch(PackageCoordinates("stable", "wordpress", "0.8.7"))

    # 测试时注入假的 getter / 执行器
    container = ServiceContainer(cfg, getters=fake_registry, executor=fake_executor)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from chartgate.core.config import Config

if TYPE_CHECKING:
    from chartgate.core.fetch import (
        ArtifactStore,
        FetchCoordinator,
        GetterRegistry,
        PackageClient,
        SourceResolver,
    )
    from chartgate.core.release import ReleaseBackend
    from chartgate.services.release_service import ReleaseService
    from chartgate.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器

    懒加载在 Web 多线程下可能并发触发，构造过程由可重入锁串行化，
    保证每个容器只有一个协调器（否则单飞去重失效）。
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        getters: GetterRegistry | None = None,
        executor: CommandExecutor | None = None,
        backend: ReleaseBackend | None = None,
    ) -> None:
        self._config = config or Config()
        self._instances: dict[str, object] = {}
        self._lock = threading.RLock()
        if getters is not None:
            self._instances["getters"] = getters
        if backend is not None:
            self._instances["backend"] = backend
        self._executor = executor

    @property
    def config(self) -> Config:
        return self._config

    # ---- 拉取缓存 ----

    @property
    def getters(self) -> GetterRegistry:
        with self._lock:
            if "getters" not in self._instances:
                from chartgate.core.fetch import build_getters
                from chartgate.core.fetch.resolver import load_repositories
                repos = load_repositories(self._config.repositories_file)
                self._instances["getters"] = build_getters(
                    self._config.getters, list(repos.values()),
                )
            return self._instances["getters"]  # type: ignore[return-value]

    @property
    def store(self) -> ArtifactStore:
        with self._lock:
            if "store" not in self._instances:
                from chartgate.core.fetch import ArtifactStore
                self._instances["store"] = ArtifactStore(self._config.archive_dir)
            return self._instances["store"]  # type: ignore[return-value]

    @property
    def resolver(self) -> SourceResolver:
        with self._lock:
            if "resolver" not in self._instances:
                from chartgate.core.fetch import SourceResolver
                self._instances["resolver"] = SourceResolver(
                    repositories_file=self._config.repositories_file,
                    index_cache_dir=self._config.index_cache_dir,
                    getters=self.getters,
                    fetch_timeout=self._config.fetch_timeout,
                )
            return self._instances["resolver"]  # type: ignore[return-value]

    @property
    def coordinator(self) -> FetchCoordinator:
        with self._lock:
            if "coordinator" not in self._instances:
                from chartgate.core.fetch import FetchCoordinator
                self._instances["coordinator"] = FetchCoordinator(
                    store=self.store,
                    getters=self.getters,
                    timeout=self._config.fetch_timeout,
                )
            return self._instances["coordinator"]  # type: ignore[return-value]

    @property
    def packages(self) -> PackageClient:
        with self._lock:
            if "packages" not in self._instances:
                from chartgate.core.fetch import PackageClient
                self._instances["packages"] = PackageClient(
                    resolver=self.resolver, coordinator=self.coordinator,
                )
            return self._instances["packages"]  # type: ignore[return-value]

    # ---- Release ----

    @property
    def backend(self) -> ReleaseBackend:
        with self._lock:
            if "backend" not in self._instances:
                from chartgate.core.release import HelmCliBackend
                self._instances["backend"] = HelmCliBackend(
                    helm_bin=self._config.helm_bin,
                    kube_context=self._config.kube_context,
                    kubeconfig=self._config.kubeconfig,
                    executor=self._executor,
                )
            return self._instances["backend"]  # type: ignore[return-value]

    @property
    def releases(self) -> ReleaseService:
        with self._lock:
            if "releases" not in self._instances:
                from chartgate.services.release_service import ReleaseService
                self._instances["releases"] = ReleaseService(
                    packages=self.packages, backend=self.backend,
                )
            return self._instances["releases"]  # type: ignore[return-value]
