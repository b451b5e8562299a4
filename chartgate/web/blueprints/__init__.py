"""Web 路由模块 - Blueprint 集合

- releases_bp.py: release 管理 (4 routes)
- charts_bp.py: chart 缓存 / 仓库 (6 routes)
"""

from chartgate.web.blueprints.charts_bp import charts_bp
from chartgate.web.blueprints.releases_bp import releases_bp

__all__ = ["charts_bp", "releases_bp"]
