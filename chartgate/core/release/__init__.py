"""Release 管理（install / list / upgrade / delete）"""

from chartgate.core.release.backend import HelmCliBackend, ReleaseBackend
from chartgate.core.release.options import ReleaseOptions, parse_status_filter

__all__ = [
    "HelmCliBackend",
    "ReleaseBackend",
    "ReleaseOptions",
    "parse_status_filter",
]
