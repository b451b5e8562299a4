"""Gunicorn 生产配置

用法:
  CHARTGATE_CONFIG=/etc/chartgate/chartgate.yml \
    gunicorn --config deploy/gunicorn.conf.py "chartgate.web.app:create_app()"

单飞去重是进程内的：同一 chart 只在同一 worker 进程内合并下载，
因此偏向少进程 + 多线程；跨进程的并发落盘由制品库的原子 rename 保证安全。
"""

import os

# ---------- 网络 ----------
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8080")

# ---------- 并发 ----------
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "16"))
worker_class = "gthread"
# chart 下载 + helm install 可能较慢，需覆盖 fetch_timeout 与 helm --timeout
timeout = int(os.getenv("GUNICORN_TIMEOUT", "660"))

# ---------- 日志 ----------
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# ---------- 进程管理 ----------
graceful_timeout = 60
keepalive = 5
max_requests = 1000
max_requests_jitter = 50


def post_worker_init(worker):  # noqa: ARG001
    from chartgate.utils.logger import setup_logging
    setup_logging(
        level=os.getenv("CHARTGATE_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CHARTGATE_LOG_JSON", "") == "1",
    )
