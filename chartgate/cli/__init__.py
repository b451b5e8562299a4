"""chartgate 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
服务容器挂在 click 上下文上，由 --config 指定的配置构造一次。
"""

from __future__ import annotations

import functools
import os
from collections.abc import Callable
from typing import Any

import click

from chartgate import __version__
from chartgate.core.config import Config
from chartgate.core.exceptions import ChartGateError
from chartgate.services.container import ServiceContainer
from chartgate.utils.logger import setup_logging


def _container() -> ServiceContainer:
    """当前命令上下文中的服务容器"""
    return click.get_current_context().find_root().obj


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """业务异常转成友好的错误输出（退出码 1）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ChartGateError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    default=lambda: os.getenv("CHARTGATE_CONFIG", "chartgate.yml"),
    show_default="$CHARTGATE_CONFIG 或 chartgate.yml",
    help="网关配置文件",
)
@click.pass_context
def main(ctx: click.Context, config_path: str) -> None:
    """chartgate - chart 拉取缓存 + release 管理网关"""
    try:
        cfg = Config.from_file(config_path)
    except ChartGateError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e
    setup_logging(
        level=os.getenv("CHARTGATE_LOG_LEVEL", cfg.log_level),
        json_output=os.getenv("CHARTGATE_LOG_JSON", "1" if cfg.log_json else "") == "1",
    )
    # 测试可通过 CliRunner.invoke(obj=...) 预先注入容器
    if ctx.obj is None:
        ctx.obj = ServiceContainer(cfg)


# 注册各领域子命令
from chartgate.cli.cmd_charts import register as _reg_charts  # noqa: E402
from chartgate.cli.cmd_release import register as _reg_release  # noqa: E402
from chartgate.cli.cmd_serve import register as _reg_serve  # noqa: E402

_reg_charts(main)
_reg_release(main)
_reg_serve(main)
