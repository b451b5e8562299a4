"""CLI — chart 拉取 / 仓库 / 缓存命令"""

from __future__ import annotations

import click

from chartgate.cli import _container, handle_errors
from chartgate.core.fetch import PackageCoordinates


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(resolve)
    group.add_command(repo)
    group.add_command(cache)


@click.command()
@click.argument("reference")
@click.option("--version", default="", help="版本约束（默认最新正式版）")
@handle_errors
def fetch(reference: str, version: str) -> None:
    """拉取 chart 到本地缓存，REFERENCE 形如 stable/wordpress"""
    coords = PackageCoordinates.parse(reference, version)
    record = _container().packages.fetch_record(coords, retry=True)
    click.echo(f"就绪: {coords} -> {record.local_path}")
    click.echo(f"  sha256={record.content_digest} size={record.size_bytes}")


@click.command()
@click.argument("reference")
@click.option("--version", default="", help="版本约束（默认最新正式版）")
@handle_errors
def resolve(reference: str, version: str) -> None:
    """解析精确版本和下载地址（不下载）"""
    key = _container().resolver.resolve(PackageCoordinates.parse(reference, version))
    click.echo(f"{key.package_name} {key.exact_version} {key.source_url}")


@click.group()
def repo() -> None:
    """仓库管理"""


@repo.command(name="list")
@handle_errors
def repo_list() -> None:
    """列出已配置的仓库"""
    repos = _container().resolver.list_repositories()
    if not repos:
        click.echo("没有已配置的仓库。")
        return
    for r in repos:
        auth = " (认证)" if r.get("username") else ""
        click.echo(f"  {r['name']:20s} {r['url']}{auth}")


@repo.command(name="update")
@click.argument("name", required=False)
@handle_errors
def repo_update(name: str | None) -> None:
    """更新仓库索引（不指定则更新全部）"""
    results = _container().resolver.refresh(name)
    failed = 0
    for repo_name, result in results.items():
        if isinstance(result, int):
            click.echo(f"  {repo_name:20s} {result} 个 chart")
        else:
            failed += 1
            click.echo(f"  {repo_name:20s} {result}")
    if failed:
        raise click.ClickException(f"{failed} 个仓库索引更新失败")


@repo.command(name="versions")
@click.argument("reference")
@handle_errors
def repo_versions(reference: str) -> None:
    """列出 chart 的已发布版本"""
    coords = PackageCoordinates.parse(reference)
    versions = _container().resolver.list_versions(
        coords.repository_name, coords.package_name,
    )
    for v in versions:
        click.echo(f"  {v}")


@click.group()
def cache() -> None:
    """本地 chart 缓存"""


@cache.command(name="list")
@handle_errors
def cache_list() -> None:
    """列出已缓存的 chart 归档"""
    records = _container().store.list_records()
    if not records:
        click.echo("缓存为空。")
        return
    for r in records:
        click.echo(
            f"  {r.key.package_name:24s} {r.key.exact_version:12s} "
            f"{r.size_bytes:>10d}  {r.content_digest[:12]}  {r.local_path}"
        )
