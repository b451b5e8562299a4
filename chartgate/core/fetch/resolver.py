"""chart 坐标解析器

职责:
- 从 repositories.yaml 加载仓库清单
- 读取本地缓存的仓库索引 (<repo>-index.yaml)
- 按版本约束挑出精确版本，给出固定版本的下载地址
- refresh(): 从远端更新仓库索引（等价于 helm repo update）

resolve() 只读本地文件，不发生网络请求。
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Any

from chartgate.core.exceptions import FetchError, NoMatchingVersion, UnknownRepository
from chartgate.core.fetch.getters import GetterRegistry
from chartgate.core.fetch.models import PackageCoordinates, Repository, ResolvedKey
from chartgate.utils.net import join_url
from chartgate.utils.yaml_io import atomic_write_bytes, load_yaml, parse_yaml

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(
    r"^v?(?P<core>\d+(?:\.\d+){0,2})(?:-(?P<pre>[0-9A-Za-z.\-]+))?(?:\+[0-9A-Za-z.\-]+)?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op>>=|<=|==|!=|>|<|=)?\s*(?P<ver>\S+)$")
_LATEST = ("", "latest", "*")


def version_key(version: str) -> tuple | None:
    """semver 排序键；无法解析返回 None

    预发布版本排在同号正式版之前 (1.0.0-rc1 < 1.0.0)。
    """
    m = _VERSION_RE.match(version.strip())
    if m is None:
        return None
    core = [int(p) for p in m["core"].split(".")]
    core += [0] * (3 - len(core))
    pre = m["pre"]
    if pre is None:
        return (*core, 1, ())
    parts = tuple(
        (0, int(p), "") if p.isdigit() else (1, 0, p) for p in pre.split(".")
    )
    return (*core, 0, parts)


def is_prerelease(version: str) -> bool:
    key = version_key(version)
    return key is not None and key[3] == 0


def _compare(op: str, left: tuple, right: tuple) -> bool:
    if op in ("", "=", "=="):
        return left == right
    if op == "!=":
        return left != right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "<":
        return left < right
    return left <= right


def match_version(constraint: str, versions: list[str]) -> str | None:
    """在已发布版本中挑出满足约束的最高版本

    约束形式:
      - 空 / latest / *:   最高正式版
      - 精确版本 (1.2.3 / v1.2.3): 字面或语义相等
      - 逗号分隔比较式 (>=1.0, <2.0): 只在正式版中挑选
    """
    constraint = constraint.strip()
    if constraint in versions:
        return constraint

    parsed = [(v, version_key(v)) for v in versions]
    parsed = [(v, k) for v, k in parsed if k is not None]

    if constraint.lower() in _LATEST:
        stable = [(v, k) for v, k in parsed if k[3] == 1]
        return max(stable, key=lambda p: p[1])[0] if stable else None

    exact = version_key(constraint)
    if exact is not None:
        for v, k in parsed:
            if k == exact:
                return v
        return None

    clauses = []
    for raw in constraint.split(","):
        m = _COMPARATOR_RE.match(raw.strip())
        bound = version_key(m["ver"]) if m else None
        if m is None or bound is None:
            return None
        clauses.append((m["op"] or "=", bound))

    candidates = [
        (v, k) for v, k in parsed
        if k[3] == 1 and all(_compare(op, k, bound) for op, bound in clauses)
    ]
    return max(candidates, key=lambda p: p[1])[0] if candidates else None


def load_repositories(path: str | Path) -> dict[str, Repository]:
    """读取 helm 风格的 repositories.yaml，文件不存在返回空字典"""
    data = load_yaml(path)
    repos: dict[str, Repository] = {}
    for item in data.get("repositories") or []:
        if not isinstance(item, dict) or not item.get("name") or not item.get("url"):
            logger.warning("忽略无效的仓库配置: %s", item)
            continue
        repos[item["name"]] = Repository(
            name=item["name"],
            url=item["url"],
            username=item.get("username", ""),
            password=item.get("password", ""),
            ca_file=item.get("caFile", ""),
        )
    logger.info("已加载 %d 个仓库: %s", len(repos), path)
    return repos


class SourceResolver:
    """坐标 → ResolvedKey 解析器"""

    def __init__(
        self,
        repositories_file: str | Path,
        index_cache_dir: str | Path,
        getters: GetterRegistry | None = None,
        fetch_timeout: float = 300.0,
    ) -> None:
        self.repositories_file = Path(repositories_file)
        self.index_cache_dir = Path(index_cache_dir)
        self.getters = getters
        self.fetch_timeout = fetch_timeout
        self._repositories: dict[str, Repository] | None = None
        # repo -> (索引文件 mtime, 解析后的索引)
        self._indexes: dict[str, tuple[float, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    # ---- 仓库清单 ----

    def repositories(self) -> dict[str, Repository]:
        """加载仓库清单（首次调用时读取文件）"""
        with self._lock:
            if self._repositories is not None:
                return self._repositories
        loaded = self._load_repositories()
        with self._lock:
            self._repositories = loaded
        return loaded

    def reload(self) -> None:
        with self._lock:
            self._repositories = None
            self._indexes.clear()

    def _load_repositories(self) -> dict[str, Repository]:
        return load_repositories(self.repositories_file)

    def list_repositories(self) -> list[dict[str, str]]:
        return [r.to_dict() for r in self.repositories().values()]

    def _repository(self, name: str) -> Repository:
        repo = self.repositories().get(name)
        if repo is None:
            raise UnknownRepository(
                f"仓库 '{name}' 未配置。可用: {sorted(self.repositories())}"
            )
        return repo

    # ---- 索引 ----

    def index_path(self, repository: str) -> Path:
        return self.index_cache_dir / f"{repository}-index.yaml"

    def _index(self, repo: Repository) -> dict[str, Any]:
        path = self.index_path(repo.name)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            raise UnknownRepository(
                f"仓库 '{repo.name}' 的索引不存在: {path}，请先执行 repo update"
            ) from None
        with self._lock:
            cached = self._indexes.get(repo.name)
        if cached is not None and cached[0] == mtime:
            return cached[1]
        index = load_yaml(path)
        with self._lock:
            self._indexes[repo.name] = (mtime, index)
        return index

    def _entries(self, repo: Repository, chart: str) -> list[dict[str, Any]]:
        entries = (self._index(repo).get("entries") or {}).get(chart)
        if not entries:
            raise NoMatchingVersion(f"仓库 '{repo.name}' 中不存在 chart '{chart}'")
        return [e for e in entries if isinstance(e, dict) and e.get("version")]

    def list_versions(self, repository: str, chart: str) -> list[str]:
        """列出 chart 的已发布版本（新版本在前）"""
        entries = self._entries(self._repository(repository), chart)
        versions = [str(e["version"]) for e in entries]
        return sorted(
            versions, key=lambda v: version_key(v) or (-1,), reverse=True,
        )

    # ---- 解析 ----

    def resolve(self, coordinates: PackageCoordinates) -> ResolvedKey:
        """解析符号坐标

        Raises:
            UnknownRepository: 仓库未配置 / 索引缺失 / 下载地址协议无可用后端
            NoMatchingVersion: 没有满足约束的已发布版本
        """
        repo = self._repository(coordinates.repository_name)
        entries = self._entries(repo, coordinates.package_name)
        by_version = {str(e["version"]): e for e in entries}

        version = match_version(coordinates.version_constraint, list(by_version))
        if version is None:
            raise NoMatchingVersion(
                f"{coordinates} 没有匹配的版本。"
                f"已发布: {self.list_versions(repo.name, coordinates.package_name)[:10]}"
            )
        entry = by_version[version]
        urls = entry.get("urls") or []
        if not urls:
            raise NoMatchingVersion(f"{coordinates.package_name}@{version} 的索引条目缺少 urls")

        source_url = join_url(repo.url, str(urls[0]))
        if self.getters is not None and not self.getters.supports(source_url):
            raise UnknownRepository(
                f"仓库 '{repo.name}' 的下载地址没有可用的拉取后端: {source_url}"
            )

        key = ResolvedKey(
            package_name=coordinates.package_name,
            exact_version=version,
            source_url=source_url,
            repository=repo.name,
            digest=str(entry.get("digest", "")),
        )
        logger.debug("解析: %s -> %s (%s)", coordinates, key, source_url)
        return key

    # ---- 索引更新 ----

    def refresh_repository(self, name: str) -> int:
        """下载单个仓库的 index.yaml 并原子写入缓存，返回 chart 数量"""
        if self.getters is None:
            raise UnknownRepository("未配置拉取后端，无法更新仓库索引")
        repo = self._repository(name)
        url = join_url(repo.url, "index.yaml")
        payload = self.getters.for_url(url, repository=repo.name).get(
            url, timeout=self.fetch_timeout,
        )
        index = parse_yaml(payload, source=url)
        atomic_write_bytes(self.index_path(repo.name), payload)
        with self._lock:
            self._indexes.pop(repo.name, None)
        count = len(index.get("entries") or {})
        logger.info("仓库索引已更新: %s (%d 个 chart)", repo.name, count)
        return count

    def refresh(self, name: str | None = None) -> dict[str, int | str]:
        """更新仓库索引，返回 {仓库名: chart 数量 | 失败原因}"""
        names = [name] if name else list(self.repositories())
        results: dict[str, int | str] = {}
        failed: list[str] = []
        for repo_name in names:
            try:
                results[repo_name] = self.refresh_repository(repo_name)
            except (FetchError, OSError) as exc:
                logger.exception("仓库索引更新失败: %s", repo_name)
                failed.append(repo_name)
                results[repo_name] = f"[FAILED] {exc}"
        if failed:
            logger.warning(
                "索引更新汇总: %d 成功, %d 失败 (%s)",
                len(names) - len(failed), len(failed), ", ".join(failed),
            )
        return results
