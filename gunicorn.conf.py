"""Gunicorn config for deploying fundtrack.main:app.

    gunicorn -c gunicorn.conf.py fundtrack.main:app
"""
import os

# Bind to the platform's PORT or default 8000
bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Uvicorn async workers. Datasets live on disk and the auto-assign lock is
# per process, so keep a single worker unless FUNDTRACK_DATA_DIR is shared
# and concurrent auto-assign runs are acceptable.
worker_class = "uvicorn.workers.UvicornWorker"
workers = int(os.environ.get("WEB_CONCURRENCY", "1"))

# Excel exports of large cycles can take a while
timeout = 60

graceful_timeout = 30

# Keep-alive — must exceed the proxy keep-alive (commonly 60s)
keepalive = 65

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"
