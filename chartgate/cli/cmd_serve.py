"""CLI — 启动 HTTP 网关（开发用，生产走 gunicorn）"""

from __future__ import annotations

import click

from chartgate.cli import _container


def register(group: click.Group) -> None:
    group.add_command(serve)


@click.command()
@click.option("--host", default=None, help="监听地址（默认取配置）")
@click.option("--port", default=None, type=int, help="监听端口（默认取配置）")
@click.option("--debug", is_flag=True, help="Flask 调试模式")
def serve(host: str | None, port: int | None, debug: bool) -> None:
    """启动 REST 网关"""
    from chartgate.web.app import create_app

    container = _container()
    cfg = container.config
    app = create_app(container=container)
    click.echo(f"chartgate 网关: http://{host or cfg.host}:{port or cfg.port}")
    app.run(host=host or cfg.host, port=port or cfg.port, debug=debug, threaded=True)
