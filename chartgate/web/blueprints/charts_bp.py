"""chart 缓存 / 仓库 API Blueprint"""

from __future__ import annotations

from flask import Blueprint, Response, request

from chartgate.core.fetch import PackageCoordinates
from chartgate.services.release_service import ChartRequest
from chartgate.web.responses import bad_request, ok

charts_bp = Blueprint("charts", __name__, url_prefix="/api/v1")


def _container():  # type: ignore[no-untyped-def]
    from chartgate.web.app import get_container
    return get_container()


@charts_bp.route("/charts", methods=["GET"])
def list_charts() -> Response:
    records = _container().store.list_records()
    return ok({"charts": [r.to_dict() for r in records]})  # type: ignore[return-value]


@charts_bp.route("/charts", methods=["POST"])
def fetch_chart() -> tuple[Response, int] | Response:
    """只拉取 chart 到本地缓存，不部署"""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return bad_request("请求体需为 JSON 对象")
    req = ChartRequest.from_body(body)
    record = _container().packages.fetch_record(req.coordinates, retry=True)
    return ok({"chart": record.to_dict()})


@charts_bp.route("/charts/<repo>/<chart>/versions", methods=["GET"])
def list_versions(repo: str, chart: str) -> Response:
    versions = _container().resolver.list_versions(repo, chart)
    return ok({"repository": repo, "chart": chart, "versions": versions})  # type: ignore[return-value]


@charts_bp.route("/charts/<repo>/<chart>/resolve", methods=["GET"])
def resolve(repo: str, chart: str) -> Response:
    coords = PackageCoordinates(repo, chart, request.args.get("version", ""))
    key = _container().resolver.resolve(coords)
    return ok({  # type: ignore[return-value]
        "name": key.package_name,
        "version": key.exact_version,
        "url": key.source_url,
        "repository": key.repository,
        "digest": key.digest,
    })


@charts_bp.route("/repositories", methods=["GET"])
def list_repositories() -> Response:
    return ok({"repositories": _container().resolver.list_repositories()})  # type: ignore[return-value]


@charts_bp.route("/repositories/refresh", methods=["POST"])
def refresh_repositories() -> Response:
    body = request.get_json(silent=True) or {}
    name = body.get("name") if isinstance(body, dict) else None
    results = _container().resolver.refresh(name or None)
    return ok({"results": results})  # type: ignore[return-value]
