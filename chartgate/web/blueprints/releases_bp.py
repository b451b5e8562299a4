"""Release 管理 API Blueprint

  POST   /api/v1/releases                 安装（先拉取 chart）   201
  GET    /api/v1/releases                 列表
  POST   /api/v1/releases/<release_name>  更新（先拉取 chart）
  DELETE /api/v1/releases/<release_name>  删除
"""

from __future__ import annotations

from flask import Blueprint, Response, request

from chartgate.core.release import ReleaseOptions
from chartgate.services.release_service import ChartRequest
from chartgate.web.responses import bad_request, ok

releases_bp = Blueprint("releases", __name__, url_prefix="/api/v1/releases")


def _releases():  # type: ignore[no-untyped-def]
    from chartgate.web.app import get_container
    return get_container().releases


def _json_body() -> dict | None:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else None


@releases_bp.route("", methods=["POST"], strict_slashes=False)
def install() -> tuple[Response, int] | Response:
    body = _json_body()
    if body is None:
        return bad_request("请求体需为 JSON 对象")
    req = ChartRequest.from_body(body)
    options = ReleaseOptions.from_body(body)
    return ok(_releases().install(req, options), status=201)


@releases_bp.route("", methods=["GET"], strict_slashes=False)
def list_all() -> tuple[Response, int] | Response:
    return ok(_releases().list(ReleaseOptions.from_query(request.args)))


@releases_bp.route("/<release_name>", methods=["POST"])
def update(release_name: str) -> tuple[Response, int] | Response:
    body = _json_body()
    if body is None:
        return bad_request("请求体需为 JSON 对象")
    req = ChartRequest.from_body(body)
    options = ReleaseOptions.from_body(body)
    return ok(_releases().update(release_name, req, options))


@releases_bp.route("/<release_name>", methods=["DELETE"])
def delete(release_name: str) -> tuple[Response, int] | Response:
    # 删除允许空请求体，全部取默认值
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        return bad_request("请求体需为 JSON 对象")
    options = ReleaseOptions.from_body(body)
    return ok(_releases().delete(release_name, options))
