"""测试共享 fixture — 临时 helm home + 假 getter + 假 helm 执行器

整体结构:

  chart_home               fake_getter                 container
  ┌───────────────┐    ┌──────────────────────┐    ┌─────────────────────┐
  │ repositories  │    │ url -> payload        │    │ ServiceContainer    │
  │ stable-index  │───>│ 记录每次 get 调用     │───>│  getters = fake     │
  │ (tmp_path)    │    │ 可按 url 阻塞 / 报错  │    │  executor = fake    │
  └───────────────┘    └──────────────────────┘    └─────────────────────┘

所有 fixture 都不访问真实网络，也不调用真实 helm。
"""

from __future__ import annotations

import hashlib
import threading
from pathlib import Path

import pytest
import yaml

from chartgate.core.config import Config
from chartgate.core.exceptions import NetworkError
from chartgate.core.fetch import GetterRegistry
from chartgate.services.container import ServiceContainer
from chartgate.utils.shell import CommandResult

STABLE_URL = "https://charts.example.com/stable"

CHARTS: dict[tuple[str, str], bytes] = {
    ("wordpress", "0.8.6"): b"\x1f\x8b wordpress 0.8.6 archive",
    ("wordpress", "0.8.7"): b"\x1f\x8b wordpress 0.8.7 archive",
    ("wordpress", "1.0.0-rc1"): b"\x1f\x8b wordpress 1.0.0-rc1 archive",
    ("mysql", "1.6.9"): b"\x1f\x8b mysql 1.6.9 archive",
}


def sha256(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def chart_url(name: str, version: str) -> str:
    return f"{STABLE_URL}/{name}-{version}.tgz"


def build_index() -> dict:
    entries: dict[str, list[dict]] = {}
    for (name, version), payload in CHARTS.items():
        # wordpress 用相对地址，mysql 用绝对地址
        url = f"{name}-{version}.tgz" if name == "wordpress" else chart_url(name, version)
        entries.setdefault(name, []).append({
            "name": name,
            "version": version,
            "urls": [url],
            "digest": sha256(payload),
        })
    return {"apiVersion": "v1", "entries": entries}


class FakeGetter:
    """可编排的假 getter：按 url 返回内容、抛异常或阻塞"""

    def __init__(self) -> None:
        self.payloads: dict[str, bytes] = {}
        self.errors: dict[str, Exception] = {}
        self.gates: dict[str, threading.Event] = {}
        self.started: dict[str, threading.Event] = {}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def add(self, url: str, payload: bytes) -> None:
        self.payloads[url] = payload

    def fail(self, url: str, exc: Exception) -> None:
        self.errors[url] = exc

    def block(self, url: str) -> threading.Event:
        """让 url 的拉取阻塞，直到返回的 Event 被 set"""
        gate = threading.Event()
        self.gates[url] = gate
        self.started[url] = threading.Event()
        return gate

    def count(self, url: str) -> int:
        with self._lock:
            return self.calls.count(url)

    def get(self, url: str, *, timeout: float) -> bytes:
        with self._lock:
            self.calls.append(url)
        if url in self.started:
            self.started[url].set()
        gate = self.gates.get(url)
        if gate is not None and not gate.wait(timeout=10):
            raise AssertionError(f"gate 未释放: {url}")
        if url in self.errors:
            raise self.errors[url]
        if url not in self.payloads:
            raise NetworkError(f"下载失败: {url} - HTTP 404 Not Found")
        return self.payloads[url]


class FakeExecutor:
    """假 helm 执行器：记录命令，按队列返回预置结果"""

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.timeouts: list[int | None] = []
        self._results: list[CommandResult] = []

    def push(self, stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self._results.append(CommandResult(returncode=returncode, stdout=stdout, stderr=stderr))

    def execute(self, cmd, *, env=None, timeout=None) -> CommandResult:  # noqa: ARG002
        self.commands.append(list(cmd))
        self.timeouts.append(timeout)
        if self._results:
            return self._results.pop(0)
        return CommandResult(returncode=0, stdout="", stderr="")

    @property
    def last(self) -> list[str]:
        return self.commands[-1]


@pytest.fixture()
def chart_home(tmp_path: Path) -> Config:
    """临时 helm home：一个 stable 仓库 + 已缓存的索引"""
    cfg = Config(home=str(tmp_path / "home"), fetch_timeout=5)
    cfg.repositories_file.parent.mkdir(parents=True)
    cfg.repositories_file.write_text(yaml.safe_dump({
        "apiVersion": "v1",
        "repositories": [
            {"name": "stable", "url": STABLE_URL},
            {"name": "private", "url": "https://charts.example.com/private",
             "username": "bot", "password": "s3cret"},
        ],
    }), encoding="utf-8")
    cfg.index_cache_dir.mkdir(parents=True)
    (cfg.index_cache_dir / "stable-index.yaml").write_text(
        yaml.safe_dump(build_index()), encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def fake_getter() -> FakeGetter:
    getter = FakeGetter()
    for (name, version), payload in CHARTS.items():
        getter.add(chart_url(name, version), payload)
    getter.add(f"{STABLE_URL}/index.yaml", yaml.safe_dump(build_index()).encode())
    return getter


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def container(chart_home: Config, fake_getter: FakeGetter, fake_executor: FakeExecutor):
    registry = GetterRegistry({"https": fake_getter, "http": fake_getter})
    return ServiceContainer(chart_home, getters=registry, executor=fake_executor)


@pytest.fixture()
def charts() -> dict[tuple[str, str], bytes]:
    """(chart, version) -> 归档内容"""
    return CHARTS


@pytest.fixture()
def url_for():
    """chart 下载地址构造函数"""
    return chart_url
