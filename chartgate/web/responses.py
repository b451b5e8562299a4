"""Web 层统一响应辅助函数

核心层异常不感知 HTTP，状态码映射集中在这里。
"""

from __future__ import annotations

from flask import Response, jsonify

from chartgate.core.exceptions import (
    ArtifactNotFound,
    ChartGateError,
    ConfigError,
    FetchTimeout,
    NetworkError,
    NoMatchingVersion,
    ReleaseError,
    UnknownRepository,
    ValidationError,
    VerificationFailed,
    WriteError,
)

# 按 MRO 查找，子类未列出时取最近的父类
ERROR_STATUS: dict[type[ChartGateError], int] = {
    ValidationError: 400,
    UnknownRepository: 404,
    NoMatchingVersion: 404,
    ArtifactNotFound: 404,
    NetworkError: 502,
    VerificationFailed: 502,
    FetchTimeout: 504,
    WriteError: 507,
    ReleaseError: 500,
    ConfigError: 500,
}


def status_for(exc: ChartGateError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def ok(data: dict, status: int = 200) -> tuple[Response, int] | Response:
    """成功响应"""
    if status == 200:
        return jsonify(data)
    return jsonify(data), status


def bad_request(message: str) -> tuple[Response, int]:
    """请求参数错误"""
    return jsonify(error=message, code=ValidationError.code), 400


def error_response(exc: ChartGateError) -> tuple[Response, int]:
    """业务异常 → {error, code[, details]} + 映射后的状态码"""
    body: dict[str, object] = {"error": str(exc), "code": exc.code}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), status_for(exc)
