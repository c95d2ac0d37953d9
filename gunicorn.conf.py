"""Gunicorn configuration file.

Serves ``webapi.flask_app:app``. Worker counts, bind address and log level come
from the environment so the same image runs in dev and production:

    GUNICORN_BIND      (default 0.0.0.0:8000)
    GUNICORN_WORKERS   (default 1)
    GUNICORN_THREADS   (default 4)
    LOG_LEVEL          (default info)

The controller keeps no per-request state and the in-memory repository is
process-local, so each worker owns an independent user store. Use a single
worker when relying on the in-memory repository.
"""
import os

wsgi_app = "webapi.flask_app:app"

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "1"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
# Correlation id travels in X-Correlation-Id; include it in access lines
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(L)ss corr=%({x-correlation-id}i)s'


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    if workers > 1:
        worker.log.warning(
            "Running %s workers with the in-memory repository: users are not shared between workers",
            workers,
        )
    worker.log.info("Worker %s ready (threads=%s)", worker.pid, threads)
