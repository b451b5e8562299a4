"""chartgate - Chart 拉取缓存 + Release 管理 HTTP 网关"""

__version__ = "0.3.0"
