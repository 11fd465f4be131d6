"""Gunicorn production configuration.

Pending import sessions are held in process memory, so the API runs as a
single worker. An apply that waits on a large bulk import needs the long
timeout.
"""
import os

bind = os.environ.get("BIND", "0.0.0.0:8000")
chdir = "backend"
wsgi_app = "app.main:app"
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 300
graceful_timeout = 30
keepalive = 5
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
