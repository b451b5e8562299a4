"""HttpGetter / GetterRegistry 单元测试（patch urlopen 或本地 socket 服务，不访问外网）"""

from __future__ import annotations

import base64
import hashlib
import http.client
import socketserver
import threading
import time
import urllib.error
import urllib.request

import pytest

from chartgate.core.exceptions import FetchTimeout, NetworkError, ValidationError
from chartgate.core.fetch import (
    ArtifactStore,
    FetchCoordinator,
    FetchState,
    GetterRegistry,
    HttpGetter,
    Repository,
    ResolvedKey,
    build_getters,
)


class _FakeResponse:
    def __init__(self, payload: bytes, delay: float = 0.0) -> None:
        self._payload = payload
        self._delay = delay
        self.headers = {"Content-Length": str(len(payload))}

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def read(self, size: int = -1) -> bytes:
        time.sleep(self._delay)
        if size < 0:
            size = len(self._payload)
        chunk, self._payload = self._payload[:size], self._payload[size:]
        return chunk


@pytest.fixture()
def captured(monkeypatch: pytest.MonkeyPatch) -> dict:
    """替换 urlopen，记录请求并返回预置响应"""
    state: dict = {"payload": b"chart-bytes", "delay": 0.0, "error": None}

    def fake_urlopen(req, timeout=None, context=None):
        state["request"] = req
        state["timeout"] = timeout
        state["context"] = context
        if state["error"] is not None:
            raise state["error"]
        return _FakeResponse(state["payload"], state["delay"])

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return state


class TestHttpGetter:
    def test_reads_full_payload(self, captured) -> None:
        captured["payload"] = b"x" * 200_000  # 多个 chunk
        data = HttpGetter().get("https://charts.example.com/a.tgz", timeout=30)
        assert data == b"x" * 200_000
        assert captured["timeout"] == 30
        assert captured["request"].get_header("User-agent").startswith("chartgate/")
        assert captured["request"].get_header("Authorization") is None

    def test_basic_auth_header(self, captured) -> None:
        HttpGetter(username="bot", password="s3cret").get("https://x/a.tgz", timeout=5)
        token = base64.b64encode(b"bot:s3cret").decode()
        assert captured["request"].get_header("Authorization") == f"Basic {token}"

    def test_http_error(self, captured) -> None:
        captured["error"] = urllib.error.HTTPError(
            "https://x/a.tgz", 404, "Not Found", {}, None,
        )
        with pytest.raises(NetworkError, match="HTTP 404"):
            HttpGetter().get("https://x/a.tgz", timeout=5)

    def test_connection_refused(self, captured) -> None:
        captured["error"] = urllib.error.URLError(ConnectionRefusedError("refused"))
        with pytest.raises(NetworkError, match="下载失败"):
            HttpGetter().get("https://x/a.tgz", timeout=5)

    @pytest.mark.parametrize("error", [
        urllib.error.URLError(TimeoutError("timed out")),
        TimeoutError("timed out"),
    ])
    def test_socket_timeout(self, captured, error) -> None:
        captured["error"] = error
        with pytest.raises(FetchTimeout, match="下载超时"):
            HttpGetter().get("https://x/a.tgz", timeout=5)

    def test_deadline_during_stream(self, captured) -> None:
        captured["payload"] = b"y" * (64 * 1024 * 4)
        captured["delay"] = 0.05
        with pytest.raises(FetchTimeout):
            HttpGetter().get("https://x/a.tgz", timeout=0.08)

    def test_incomplete_read_is_network_error(self, captured) -> None:
        captured["error"] = http.client.IncompleteRead(b"0123")
        with pytest.raises(NetworkError, match="下载失败"):
            HttpGetter().get("https://x/a.tgz", timeout=5)

    def test_file_scheme_rejected(self, captured) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            HttpGetter().get("file:///etc/passwd", timeout=5)
        assert "request" not in captured


class TestGetterRegistry:
    def test_scheme_lookup(self) -> None:
        plain = HttpGetter()
        registry = GetterRegistry({"https": plain})
        assert registry.for_url("HTTPS://x/a.tgz") is plain
        assert registry.supports("https://x")
        assert not registry.supports("http://x")

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(NetworkError, match="没有可用的拉取后端"):
            GetterRegistry({"https": HttpGetter()}).for_url("oci://reg/chart")

    def test_repository_override(self) -> None:
        plain, private = HttpGetter(), HttpGetter(username="bot")
        registry = GetterRegistry({"https": plain})
        registry.register_for_repository("private", private)
        assert registry.for_url("https://x/a.tgz", repository="private") is private
        assert registry.for_url("https://x/a.tgz", repository="stable") is plain
        # 覆盖项不绕过协议白名单
        with pytest.raises(NetworkError):
            registry.for_url("ftp://x/a.tgz", repository="private")

    def test_build_getters(self) -> None:
        repos = [
            Repository("stable", "https://a"),
            Repository("private", "https://b", username="bot", password="pw"),
            Repository("internal", "https://c", ca_file="/etc/ssl/internal.pem"),
        ]
        registry = build_getters(["https"], repos)
        assert registry.schemes == ["https"]
        private = registry.for_url("https://b/x.tgz", repository="private")
        assert isinstance(private, HttpGetter)
        assert private.username == "bot"
        internal = registry.for_url("https://c/x.tgz", repository="internal")
        assert internal.ca_file == "/etc/ssl/internal.pem"
        assert registry.for_url("https://a/x.tgz", repository="stable").username == ""


# ---- 本地 socket 服务，按原始字节回写响应 ----

ARCHIVE = b"\x1f\x8b wordpress 0.8.7 archive"


class _RawHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        while self.rfile.readline() not in (b"\r\n", b"\n", b""):
            pass
        self.wfile.write(self.server.response)  # type: ignore[attr-defined]
        self.wfile.flush()


@pytest.fixture()
def raw_server(monkeypatch: pytest.MonkeyPatch):
    """返回 serve(响应字节) -> url；连接在写完响应后立即关闭"""
    for name in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), _RawHandler)
    server.daemon_threads = True
    server.response = b""  # type: ignore[attr-defined]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    def serve(response: bytes) -> str:
        server.response = response  # type: ignore[attr-defined]
        host, port = server.server_address
        return f"http://{host}:{port}/stable/wordpress-0.8.7.tgz"

    yield serve
    server.shutdown()
    server.server_close()


def _coordinator(tmp_path) -> FetchCoordinator:
    return FetchCoordinator(
        ArtifactStore(tmp_path / "archive"), GetterRegistry({"http": HttpGetter()}), timeout=5,
    )


def _key(url: str, digest: str = "") -> ResolvedKey:
    return ResolvedKey("wordpress", "0.8.7", source_url=url, repository="stable", digest=digest)


class TestAgainstLocalServer:
    def test_complete_body(self, raw_server, tmp_path) -> None:
        url = raw_server(
            b"HTTP/1.1 200 OK\r\nContent-Length: %d\r\nConnection: close\r\n\r\n"
            % len(ARCHIVE) + ARCHIVE
        )
        coordinator = _coordinator(tmp_path)
        path = coordinator.acquire(_key(url, hashlib.sha256(ARCHIVE).hexdigest()))
        assert path.read_bytes() == ARCHIVE

    @pytest.mark.parametrize("digest", ["", hashlib.sha256(ARCHIVE).hexdigest()])
    def test_short_body_is_network_error(self, raw_server, tmp_path, digest: str) -> None:
        """声明 1000 字节只收到 10 字节：网络错误，而不是校验失败或就绪"""
        url = raw_server(
            b"HTTP/1.1 200 OK\r\nContent-Length: 1000\r\nConnection: close\r\n\r\n0123456789"
        )
        coordinator = _coordinator(tmp_path)
        key = _key(url, digest)
        with pytest.raises(NetworkError, match="下载不完整"):
            coordinator.acquire(key)
        assert coordinator.state(key) is FetchState.FAILED
        assert not coordinator.store.exists(key)
        assert coordinator.store.list_records() == []

    def test_cut_off_chunked_body(self, raw_server, tmp_path) -> None:
        url = raw_server(
            b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\nConnection: close\r\n\r\n"
            b"a\r\n0123456789"
        )
        coordinator = _coordinator(tmp_path)
        key = _key(url)
        with pytest.raises(NetworkError):
            coordinator.acquire(key)
        assert not coordinator.store.exists(key)

    def test_not_found(self, raw_server, tmp_path) -> None:
        url = raw_server(
            b"HTTP/1.1 404 Not Found\r\nContent-Length: 0\r\nConnection: close\r\n\r\n"
        )
        coordinator = _coordinator(tmp_path)
        key = _key(url)
        with pytest.raises(NetworkError, match="HTTP 404"):
            coordinator.acquire(key)
        assert not coordinator.store.exists(key)
        assert coordinator.store.list_records() == []
