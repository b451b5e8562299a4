"""单飞 (single-flight) 拉取协调器

同一 ResolvedKey 在进程内同一时刻至多一个网络拉取：
  - 首个调用方在表锁下插入 PENDING 记录，成为 owner，在锁外完成下载 + 校验 + 落盘
  - 后续调用方拿到同一条记录，在记录自己的 Event 上等待，不持有表锁
  - owner 结束后把记录迁移到 READY / FAILED 并唤醒全部等待者，所有人看到同一结果

表锁只保护 key → 记录 这张表的读写；网络和文件 I/O 一律在锁外执行，
不同 key 之间互不阻塞。FAILED 不会自动重试，调用方显式 retry=True 才会发起新一轮拉取。
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from pathlib import Path

from chartgate.core.exceptions import FetchError, FetchTimeout
from chartgate.core.fetch.getters import GetterRegistry
from chartgate.core.fetch.models import ArtifactRecord, FetchState, ResolvedKey
from chartgate.core.fetch.store import ArtifactStore, file_digest, normalize_digest

logger = logging.getLogger(__name__)


def _replay(error: BaseException) -> BaseException:
    """为等待者复制一份记录的异常，原对象的 traceback 不被反复追加"""
    try:
        return copy.copy(error)
    except TypeError:
        # 构造参数与 args 对不上的异常类无法复制
        return FetchError(f"{type(error).__name__}: {error}")


class _Flight:
    """单个 key 的一轮拉取；状态只在表锁下迁移，且只迁移一次"""

    __slots__ = ("done", "state", "path", "error")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.state = FetchState.PENDING
        self.path: Path | None = None
        self.error: BaseException | None = None


class FetchCoordinator:
    """并发去重的 chart 拉取协调器"""

    def __init__(
        self,
        store: ArtifactStore,
        getters: GetterRegistry,
        timeout: float = 300.0,
    ) -> None:
        self.store = store
        self.getters = getters
        self.timeout = timeout
        self._table: dict[ResolvedKey, _Flight] = {}
        self._lock = threading.Lock()
        self._retrievals = 0

    @property
    def retrievals(self) -> int:
        """累计发起的网络拉取次数"""
        with self._lock:
            return self._retrievals

    def state(self, key: ResolvedKey) -> FetchState | None:
        with self._lock:
            flight = self._table.get(key)
            return None if flight is None else flight.state

    def acquire(self, key: ResolvedKey, retry: bool = False) -> Path:
        """返回 key 对应制品的本地路径，必要时拉取

        参数:
            key: 解析后的制品标识
            retry: 上一轮已 FAILED 时是否发起新一轮拉取；
                   为 False 时直接抛出上一轮记录的异常

        Raises:
            NetworkError / FetchTimeout / VerificationFailed / WriteError
        """
        while True:
            with self._lock:
                flight = self._table.get(key)
                owner = flight is None or (retry and flight.state is FetchState.FAILED)
                if owner:
                    flight = _Flight()
                    self._table[key] = flight

            if owner:
                return self._run(key, flight)

            if not flight.done.is_set():
                logger.debug("等待进行中的拉取: %s", key)
            flight.done.wait()

            if flight.state is FetchState.FAILED:
                raise _replay(flight.error) from flight.error  # type: ignore[arg-type]
            if flight.path is not None and flight.path.is_file():
                return flight.path

            # READY 但底层文件已被外部清理：丢弃该记录，重新走一轮
            logger.warning("缓存文件已被清理，重新拉取: %s", key)
            with self._lock:
                if self._table.get(key) is flight:
                    del self._table[key]
            self.store.forget(key)

    def _run(self, key: ResolvedKey, flight: _Flight) -> Path:
        """owner 执行实际拉取，无论成败都会迁移状态并唤醒等待者"""
        try:
            if self._cached_intact(key):
                path = self.store.path_for(key)
                logger.info("本地缓存命中: %s -> %s", key, path)
            else:
                path = self._retrieve(key)
        except Exception as exc:
            self._finish(flight, error=exc)
            logger.error("拉取失败: %s - %s", key, exc)
            raise
        except BaseException:
            # KeyboardInterrupt 等，不能让等待者永远挂起
            self._finish(flight, error=FetchError(f"拉取被中断: {key}"))
            raise
        self._finish(flight, path=path)
        return path

    def _cached_intact(self, key: ResolvedKey) -> bool:
        """磁盘上已有归档且与索引摘要一致（无摘要时只看存在性）"""
        if not self.store.exists(key):
            return False
        expected = normalize_digest(key.digest)
        if not expected:
            return True
        actual = file_digest(self.store.path_for(key))
        if actual == expected:
            return True
        logger.warning("本地归档摘要不符，重新拉取: %s (实际 %s)", key, actual)
        self.store.forget(key)
        return False

    def _finish(
        self, flight: _Flight, path: Path | None = None, error: BaseException | None = None,
    ) -> None:
        with self._lock:
            if flight.done.is_set():
                return
            if error is None:
                flight.path = path
                flight.state = FetchState.READY
            else:
                flight.error = error
                flight.state = FetchState.FAILED
            flight.done.set()

    def _retrieve(self, key: ResolvedKey) -> Path:
        getter = self.getters.for_url(key.source_url, repository=key.repository)
        with self._lock:
            self._retrievals += 1
        logger.info("开始拉取: %s <- %s", key, key.source_url)
        start = time.monotonic()
        payload = getter.get(key.source_url, timeout=self.timeout)
        elapsed = time.monotonic() - start
        if elapsed > self.timeout:
            raise FetchTimeout(
                f"拉取超时 {key}: 耗时 {elapsed:.1f}s, 上限 {self.timeout:g}s"
            )
        path = self.store.put(key, payload, expected_digest=key.digest)
        logger.info("拉取完成: %s (%.2fs)", key, elapsed)
        return path

    def records(self) -> list[ArtifactRecord]:
        """当前进程内已就绪制品的记录"""
        with self._lock:
            ready = [k for k, f in self._table.items() if f.state is FetchState.READY]
        return [self.store.record(k) for k in ready if self.store.exists(k)]
