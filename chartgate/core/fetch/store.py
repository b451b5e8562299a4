"""chart 归档制品库

职责:
- ResolvedKey → 本地路径的纯映射 (<archive_dir>/<chart>-<version>.tgz)
- 存在性检查
- 原子写入：先写同目录临时文件并校验摘要，通过后才 rename 到最终路径，
  并发的 path_for() 永远看不到写了一半的文件
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
import threading
from pathlib import Path

from chartgate.core.exceptions import ArtifactNotFound, VerificationFailed, WriteError
from chartgate.core.fetch.models import ArtifactRecord, ResolvedKey

logger = logging.getLogger(__name__)

_ARCHIVE_RE = re.compile(r"^(?P<name>.+?)-(?P<version>v?\d+\.\d+.*)\.tgz$")
_CHUNK = 64 * 1024


def normalize_digest(digest: str) -> str:
    """索引里的摘要可能带 "sha256:" 前缀，统一成小写十六进制"""
    digest = digest.strip().lower()
    if digest.startswith("sha256:"):
        digest = digest[len("sha256:"):]
    return digest


def file_digest(path: Path) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


class ArtifactStore:
    """本地 chart 归档库"""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        # 摘要计算代价较高，记录按 key 缓存；仅保护这张小表
        self._records: dict[ResolvedKey, ArtifactRecord] = {}
        self._lock = threading.Lock()

    def _final_path(self, key: ResolvedKey) -> Path:
        return self.root / key.archive_name

    def exists(self, key: ResolvedKey) -> bool:
        return self._final_path(key).is_file()

    def path_for(self, key: ResolvedKey) -> Path:
        """返回已落盘制品路径

        Raises:
            ArtifactNotFound: 制品不存在
        """
        path = self._final_path(key)
        if not path.is_file():
            raise ArtifactNotFound(f"制品不存在: {key} ({path})")
        return path

    def put(self, key: ResolvedKey, payload: bytes, expected_digest: str = "") -> Path:
        """写入制品并返回最终路径

        Raises:
            VerificationFailed: 内容摘要与 expected_digest 不一致（临时文件已删除）
            WriteError: 本地写盘失败（临时文件已删除）
        """
        final = self._final_path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=str(self.root), prefix=f".{key.archive_name}.", suffix=".tmp",
            )
        except OSError as e:
            raise WriteError(f"无法创建临时文件 {self.root}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            actual = hashlib.sha256(payload).hexdigest()
            expected = normalize_digest(expected_digest)
            if expected and actual != expected:
                raise VerificationFailed(
                    f"摘要校验失败 {key}: 期望 {expected}, 实际 {actual}",
                    expected=expected, actual=actual,
                )
            os.replace(tmp, str(final))
        except Exception as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            if isinstance(e, OSError):
                raise WriteError(f"写入制品失败 {final}: {e}") from e
            raise

        record = ArtifactRecord(
            key=key, local_path=final,
            size_bytes=len(payload), content_digest=actual,
        )
        with self._lock:
            self._records[key] = record
        logger.info("制品已落盘: %s -> %s (%d 字节)", key, final, len(payload))
        return final

    def record(self, key: ResolvedKey) -> ArtifactRecord:
        """返回制品记录（摘要按需计算一次）"""
        with self._lock:
            cached = self._records.get(key)
        if cached is not None and cached.local_path.is_file():
            return cached
        path = self.path_for(key)
        record = ArtifactRecord(
            key=key, local_path=path,
            size_bytes=path.stat().st_size, content_digest=file_digest(path),
        )
        with self._lock:
            self._records[key] = record
        return record

    def forget(self, key: ResolvedKey) -> None:
        """丢弃内存中的记录（底层文件被外部清理后调用）"""
        with self._lock:
            self._records.pop(key, None)

    def list_records(self) -> list[ArtifactRecord]:
        """列出库中全部制品，按文件名排序"""
        if not self.root.is_dir():
            return []
        records = []
        for path in sorted(self.root.glob("*.tgz")):
            m = _ARCHIVE_RE.match(path.name)
            if m is None:
                continue
            key = ResolvedKey(package_name=m["name"], exact_version=m["version"])
            try:
                records.append(self.record(key))
            except ArtifactNotFound:
                # 扫描与读取之间被外部清理
                continue
        return records
