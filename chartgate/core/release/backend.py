"""Release 部署后端

ReleaseBackend 协议抽象集群侧的部署管理端；默认实现 HelmCliBackend
通过 CommandExecutor 调用 helm 二进制并解析其 JSON 输出。
release 生命周期语义完全由 helm 负责，这里只做参数映射和错误转换。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from chartgate.core.exceptions import ReleaseError
from chartgate.core.release.options import ReleaseOptions
from chartgate.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

# 对外状态名 → helm list 过滤参数
_STATUS_FLAGS = {
    "deployed": "--deployed",
    "deleted": "--uninstalled",
    "deleting": "--uninstalling",
    "failed": "--failed",
    "superseded": "--superseded",
    "pending": "--pending",
}

# helm 自身的 --timeout 之外，给子进程多留的余量
_PROCESS_GRACE = 30


class ReleaseBackend(Protocol):
    """部署管理端协议"""

    def install(
        self, chart_path: Path, namespace: str, release_name: str, options: ReleaseOptions,
    ) -> dict[str, Any]: ...

    def upgrade(
        self, release_name: str, chart_path: Path, namespace: str, options: ReleaseOptions,
    ) -> dict[str, Any]: ...

    def list(self, options: ReleaseOptions) -> list[dict[str, Any]]: ...

    def uninstall(self, release_name: str, options: ReleaseOptions) -> dict[str, Any]: ...


class HelmCliBackend:
    """基于 helm 命令行的部署后端"""

    def __init__(
        self,
        helm_bin: str = "helm",
        kube_context: str = "",
        kubeconfig: str = "",
        executor: CommandExecutor | None = None,
    ) -> None:
        self.helm_bin = helm_bin
        self.kube_context = kube_context
        self.kubeconfig = kubeconfig
        self.executor: CommandExecutor = executor or LocalExecutor()

    # ---- 参数拼装 ----

    def _base(self) -> list[str]:
        cmd = [self.helm_bin]
        if self.kube_context:
            cmd += ["--kube-context", self.kube_context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    @staticmethod
    def _namespace_args(namespace: str) -> list[str]:
        return ["--namespace", namespace] if namespace else []

    @staticmethod
    def _mutation_args(options: ReleaseOptions) -> list[str]:
        args = []
        if options.dry_run:
            args.append("--dry-run")
        if options.disable_hooks:
            args.append("--no-hooks")
        args += ["--timeout", f"{options.timeout_seconds}s"]
        return args

    def _run(self, args: list[str], timeout: int) -> str:
        cmd = self._base() + args
        logger.info("helm %s", " ".join(args[:2]))
        result = self.executor.execute(cmd, timeout=timeout + _PROCESS_GRACE)
        if not result.success:
            message = (result.stderr or result.stdout).strip()[:500]
            raise ReleaseError(
                f"helm {args[0]} 失败 (rc={result.returncode}): {message}",
                returncode=result.returncode,
            )
        return result.stdout

    @staticmethod
    def _parse_json(stdout: str, operation: str) -> Any:
        if not stdout.strip():
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ReleaseError(f"helm {operation} 输出不是合法 JSON: {e}") from e

    # ---- 操作 ----

    def install(
        self, chart_path: Path, namespace: str, release_name: str, options: ReleaseOptions,
    ) -> dict[str, Any]:
        args = ["install"]
        if release_name:
            args += [release_name, str(chart_path)]
        else:
            args += [str(chart_path), "--generate-name"]
        if namespace:
            args += ["--namespace", namespace, "--create-namespace"]
        args += self._mutation_args(options) + ["--output", "json"]
        stdout = self._run(args, options.timeout_seconds)
        return self._parse_json(stdout, "install") or {}

    def upgrade(
        self, release_name: str, chart_path: Path, namespace: str, options: ReleaseOptions,
    ) -> dict[str, Any]:
        args = ["upgrade", release_name, str(chart_path)]
        args += self._namespace_args(namespace)
        args += self._mutation_args(options) + ["--output", "json"]
        stdout = self._run(args, options.timeout_seconds)
        return self._parse_json(stdout, "upgrade") or {}

    def list(self, options: ReleaseOptions) -> list[dict[str, Any]]:
        args = [
            "list", "--output", "json",
            "--max", str(options.limit), "--offset", str(options.offset),
        ]
        if options.sort_by == "last_released":
            args.append("--date")
        if options.sort_order == "desc":
            args.append("--reverse")
        if options.filter:
            args += ["--filter", options.filter]
        if options.namespace:
            args += ["--namespace", options.namespace]
        else:
            args.append("--all-namespaces")
        if options.all_statuses:
            args.append("--all")
        else:
            args += [_STATUS_FLAGS[s] for s in options.status_filter]
        stdout = self._run(args, options.timeout_seconds)
        releases = self._parse_json(stdout, "list")
        # 没有任何 release 时 helm 可能什么都不输出
        return releases if isinstance(releases, list) else []

    def uninstall(self, release_name: str, options: ReleaseOptions) -> dict[str, Any]:
        args = ["uninstall", release_name]
        args += self._namespace_args(options.namespace)
        args += self._mutation_args(options)
        if not options.purge:
            args.append("--keep-history")
        stdout = self._run(args, options.timeout_seconds)
        return {
            "name": release_name,
            "namespace": options.namespace,
            "purged": options.purge,
            "dryRun": options.dry_run,
            "info": stdout.strip(),
        }
