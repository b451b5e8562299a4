"""LocalExecutor 单元测试"""

from __future__ import annotations

import os
import sys

from chartgate.utils.shell import CommandResult, LocalExecutor


class TestLocalExecutor:
    def test_success(self) -> None:
        r = LocalExecutor().execute(["echo", "hello"])
        assert r.success
        assert "hello" in r.stdout

    def test_failure_returncode(self) -> None:
        r = LocalExecutor().execute(["false"])
        assert not r.success
        assert r.returncode != 0

    def test_env_passed(self) -> None:
        env = {**os.environ, "CHARTGATE_TEST_VAR": "42"}
        r = LocalExecutor().execute(["env"], env=env)
        assert "CHARTGATE_TEST_VAR=42" in r.stdout

    def test_timeout_becomes_result(self) -> None:
        r = LocalExecutor().execute(
            [sys.executable, "-c", "import time; time.sleep(5)"], timeout=1,
        )
        assert r.returncode == -1
        assert "命令超时" in r.stderr

    def test_missing_binary(self) -> None:
        r = LocalExecutor().execute(["chartgate-no-such-helm"])
        assert r.returncode == 127
        assert "可执行文件不存在" in r.stderr


def test_command_result_success_flag() -> None:
    assert CommandResult(0, "", "").success
    assert not CommandResult(1, "", "boom").success
