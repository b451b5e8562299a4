"""PackageClient 端到端测试 — 解析 → 单飞拉取 → 制品库"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from chartgate.core.exceptions import NoMatchingVersion, UnknownRepository, VerificationFailed
from chartgate.core.fetch import PackageClient, PackageCoordinates, ResolvedKey

WORDPRESS = PackageCoordinates("stable", "wordpress", "0.8.7")


class TestFetchScenario:
    def test_twenty_parallel_fetches(self, container, fake_getter, url_for) -> None:
        """stable/wordpress 0.8.7，20 个并发调用只下载一次"""
        client = container.packages
        key = client.resolve(WORDPRESS)
        assert key == ResolvedKey("wordpress", "0.8.7")
        assert key.source_url == url_for("wordpress", "0.8.7")

        gate = fake_getter.block(key.source_url)
        with ThreadPoolExecutor(max_workers=20) as pool:
            futures = [pool.submit(client.fetch, WORDPRESS) for _ in range(20)]
            assert fake_getter.started[key.source_url].wait(timeout=5)
            time.sleep(0.1)
            gate.set()
            paths = {f.result(timeout=10) for f in futures}

        assert fake_getter.count(key.source_url) == 1
        assert len(paths) == 1
        assert container.store.exists(key)

    def test_fetch_record(self, container, charts) -> None:
        record = container.packages.fetch_record(WORDPRESS)
        assert record.size_bytes == len(charts[("wordpress", "0.8.7")])
        assert record.to_dict()["version"] == "0.8.7"

    def test_latest_resolution(self, container) -> None:
        path = container.packages.fetch(PackageCoordinates("stable", "wordpress"))
        assert path.name == "wordpress-0.8.7.tgz"


class TestErrorPropagation:
    def test_no_matching_version_skips_coordinator(self, container) -> None:
        coordinator = MagicMock()
        client = PackageClient(container.resolver, coordinator)
        with pytest.raises(NoMatchingVersion):
            client.fetch(PackageCoordinates("stable", "wordpress", "42.0.0"))
        coordinator.acquire.assert_not_called()

    def test_unknown_repository_skips_coordinator(self, container) -> None:
        coordinator = MagicMock()
        client = PackageClient(container.resolver, coordinator)
        with pytest.raises(UnknownRepository):
            client.fetch(PackageCoordinates("nope", "wordpress"))
        coordinator.acquire.assert_not_called()

    def test_verification_error_verbatim(self, container, fake_getter, url_for) -> None:
        fake_getter.add(url_for("wordpress", "0.8.7"), b"evil")
        with pytest.raises(VerificationFailed, match="摘要校验失败"):
            container.packages.fetch(WORDPRESS)
        # 显式重试仍失败（上游未修复），且每次都重新拉取
        with pytest.raises(VerificationFailed):
            container.packages.fetch(WORDPRESS, retry=True)
        assert fake_getter.count(url_for("wordpress", "0.8.7")) == 2
