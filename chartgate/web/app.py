"""HTTP 网关（基于 Flask）

把 REST 调用翻译成 chart 拉取和 release 操作，核心逻辑全部在
chartgate.core / chartgate.services，这里只做路由、参数解码和状态码映射。

启动方式:
  chartgate serve --port 8080                                 # 开发
  gunicorn --config deploy/gunicorn.conf.py "chartgate.web.app:create_app()"   # 生产
"""

from __future__ import annotations

import logging

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from chartgate import __version__
from chartgate.core.config import Config
from chartgate.core.exceptions import ChartGateError
from chartgate.services.container import ServiceContainer
from chartgate.web.responses import error_response, status_for

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 请求体只有小 JSON
EXTENSION_KEY = "chartgate"


def get_container() -> ServiceContainer:
    """当前应用绑定的服务容器"""
    return current_app.extensions[EXTENSION_KEY]


def create_app(
    config: Config | None = None,
    container: ServiceContainer | None = None,
) -> Flask:
    """应用工厂：配置显式传入，未传入时按 CHARTGATE_CONFIG 加载"""
    if container is None:
        container = ServiceContainer(config or Config.from_env())

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
    app.extensions[EXTENSION_KEY] = container

    from chartgate.web.blueprints import charts_bp, releases_bp
    app.register_blueprint(releases_bp)
    app.register_blueprint(charts_bp)

    _register_error_handlers(app)

    @app.route("/healthz")
    def healthz():
        return jsonify(status="ok", version=__version__)

    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ChartGateError)
    def handle_business_error(exc: ChartGateError):
        status = status_for(exc)
        if status >= 500:
            logger.error("请求失败 [%s]: %s", exc.code, exc)
        else:
            logger.info("请求被拒绝 [%s]: %s", exc.code, exc)
        return error_response(exc)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        """将所有 HTTP 异常统一返回 JSON"""
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def handle_generic_exception(exc: Exception):  # noqa: ARG001
        logger.exception("未处理的异常")
        return jsonify(error="服务器内部错误"), 500
