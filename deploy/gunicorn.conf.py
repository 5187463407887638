"""
Gunicorn settings for walletwatch.

Each request makes one or two store round-trips and holds no state, so
threaded workers carry the load:

    gunicorn -c deploy/gunicorn.conf.py walletwatch.wsgi:app
"""

from __future__ import annotations

import logging
import multiprocessing
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")

worker_class = "gthread"
workers = int(os.environ.get("GUNICORN_WORKERS", str(multiprocessing.cpu_count() * 2 + 1)))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))

# Store calls carry no timeout of their own; this bounds a stuck request.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))

accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("GUNICORN_LOGLEVEL", "info")
access_log_format = '{"remote": "%(h)s", "request": "%(r)s", "status": %(s)s, "ms": %(M)s}'

proc_name = "walletwatch"


def on_starting(server):
    logging.getLogger(__name__).info(
        "walletwatch gunicorn: %s workers x %s threads on %s", workers, threads, bind
    )
