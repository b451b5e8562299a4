"""CLI — release 管理命令"""

from __future__ import annotations

import json

import click

from chartgate.cli import _container, handle_errors
from chartgate.core.fetch import PackageCoordinates
from chartgate.core.release import ReleaseOptions, parse_status_filter
from chartgate.services.release_service import ChartRequest


def register(group: click.Group) -> None:
    group.add_command(release)


def _chart_request(reference: str, version: str, namespace: str, name: str = "") -> ChartRequest:
    coords = PackageCoordinates.parse(reference, version)
    return ChartRequest.from_body({
        "repoName": coords.repository_name,
        "chartName": coords.package_name,
        "version": version,
        "namespace": namespace,
        "releaseName": name,
    })


def _echo_json(data: object) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))


@click.group()
def release() -> None:
    """release 管理（install / list / upgrade / delete）"""


@release.command(name="list")
@click.option("--namespace", default="", help="命名空间（默认全部）")
@click.option("--status", default="", help="状态过滤，逗号分隔或 all")
@click.option("--filter", "name_filter", default="", help="名称正则过滤")
@click.option("--sort-by", type=click.Choice(["name", "last_released"]), default="name")
@click.option("--desc", is_flag=True, help="倒序")
@click.option("--limit", default=256, show_default=True)
@click.option("--offset", default=0)
@handle_errors
def release_list(
    namespace: str, status: str, name_filter: str,
    sort_by: str, desc: bool, limit: int, offset: int,
) -> None:
    """列出 release"""
    options = ReleaseOptions(
        namespace=namespace, status_filter=parse_status_filter(status),
        filter=name_filter, sort_by=sort_by, sort_order="desc" if desc else "asc",
        limit=limit, offset=offset,
    )
    result = _container().releases.list(options)
    if not result["releases"]:
        click.echo("没有 release。")
        return
    for r in result["releases"]:
        click.echo(
            f"  {r.get('name', ''):24s} {r.get('namespace', ''):16s} "
            f"{r.get('status', ''):12s} {r.get('chart', '')}"
        )


@release.command(name="install")
@click.argument("reference")
@click.option("--version", default="", help="chart 版本约束")
@click.option("--namespace", default="", help="目标命名空间")
@click.option("--name", default="", help="release 名称（默认自动生成）")
@click.option("--dry-run", is_flag=True)
@click.option("--no-hooks", is_flag=True)
@click.option("--timeout", default=300, show_default=True, help="秒")
@handle_errors
def release_install(
    reference: str, version: str, namespace: str, name: str,
    dry_run: bool, no_hooks: bool, timeout: int,
) -> None:
    """拉取 chart 并安装"""
    req = _chart_request(reference, version, namespace, name)
    options = ReleaseOptions(dry_run=dry_run, disable_hooks=no_hooks, timeout_seconds=timeout)
    _echo_json(_container().releases.install(req, options))


@release.command(name="upgrade")
@click.argument("release_name")
@click.argument("reference")
@click.option("--version", default="", help="chart 版本约束")
@click.option("--namespace", default="", help="release 所在命名空间")
@click.option("--dry-run", is_flag=True)
@click.option("--no-hooks", is_flag=True)
@click.option("--timeout", default=300, show_default=True, help="秒")
@handle_errors
def release_upgrade(
    release_name: str, reference: str, version: str, namespace: str,
    dry_run: bool, no_hooks: bool, timeout: int,
) -> None:
    """拉取 chart 并更新已有 release"""
    req = _chart_request(reference, version, namespace)
    options = ReleaseOptions(dry_run=dry_run, disable_hooks=no_hooks, timeout_seconds=timeout)
    _echo_json(_container().releases.update(release_name, req, options))


@release.command(name="delete")
@click.argument("release_name")
@click.option("--namespace", default="", help="release 所在命名空间")
@click.option("--purge", is_flag=True, help="同时清除历史记录")
@click.option("--dry-run", is_flag=True)
@click.option("--no-hooks", is_flag=True)
@click.option("--timeout", default=300, show_default=True, help="秒")
@handle_errors
def release_delete(
    release_name: str, namespace: str, purge: bool,
    dry_run: bool, no_hooks: bool, timeout: int,
) -> None:
    """删除 release"""
    options = ReleaseOptions(
        namespace=namespace, purge=purge, dry_run=dry_run,
        disable_hooks=no_hooks, timeout_seconds=timeout,
    )
    result = _container().releases.delete(release_name, options)
    click.echo(f"已删除: {result['name']}" + (" (dry-run)" if dry_run else ""))
