"""统一异常体系

所有业务异常继承 ChartGateError，每个类带一个稳定的 code。
核心层不感知 HTTP；Web 层按异常类型映射状态码，CLI 层输出友好提示。

分组:
  ResolveError: 解析阶段失败，未发生任何网络拉取，修正配置后可重试
  FetchError:   拉取阶段失败（网络 / 超时 / 校验 / 写盘），由调用方决定是否重新 acquire
"""

from __future__ import annotations


class ChartGateError(Exception):
    """网关基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ChartGateError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(ChartGateError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


# ---- 解析阶段 ----


class ResolveError(ChartGateError):
    """坐标解析失败"""

    code = "RESOLVE_ERROR"


class UnknownRepository(ResolveError):
    """仓库名未配置，或仓库地址没有可用的拉取后端"""

    code = "UNKNOWN_REPOSITORY"


class NoMatchingVersion(ResolveError):
    """版本约束匹配不到任何已发布版本"""

    code = "NO_MATCHING_VERSION"


# ---- 拉取阶段 ----


class FetchError(ChartGateError):
    """拉取阶段失败"""

    code = "FETCH_ERROR"


class NetworkError(FetchError):
    """网络请求失败（连接失败、HTTP 错误码等）"""

    code = "NETWORK_ERROR"


class FetchTimeout(FetchError):
    """单次拉取超过截止时间"""

    code = "FETCH_TIMEOUT"


class VerificationFailed(FetchError):
    """内容摘要与索引声明不一致，不会自动重试"""

    code = "VERIFICATION_FAILED"

    def __init__(self, message: str, expected: str = "", actual: str = "") -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class WriteError(FetchError):
    """本地写盘失败（磁盘满、权限等）"""

    code = "WRITE_ERROR"


class ArtifactNotFound(ChartGateError):
    """制品库中不存在指定制品"""

    code = "ARTIFACT_NOT_FOUND"


# ---- Release 管理 ----


class ReleaseError(ChartGateError):
    """部署管理端（helm）操作失败"""

    code = "RELEASE_ERROR"

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
