"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，helm 后端经由它调用二进制，
测试时注入假执行器即可，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用"""

    def execute(
        self,
        cmd: list[str],
        *,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）

    超时不抛异常，而是转换为 returncode=-1 的结果，由调用方统一处理。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        logger.debug("执行: %s", " ".join(cmd))
        try:
            r = subprocess.run(
                cmd, capture_output=True, text=True,
                env=env, check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                returncode=-1, stdout="",
                stderr=f"命令超时 ({timeout}s): {cmd[0]}",
            )
        except FileNotFoundError:
            return CommandResult(
                returncode=127, stdout="",
                stderr=f"可执行文件不存在: {cmd[0]}",
            )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )
