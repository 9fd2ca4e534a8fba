"""
Gunicorn configuration for the Couple Sync API.

Env vars that override defaults:
  PORT     — TCP port to bind
  WORKERS  — number of worker processes (default: 1)

Presence state lives in process memory (InMemoryPresenceChannel), so partners
only see each other when they hit the same worker. Keep WORKERS=1 unless a
shared presence channel is plugged in.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "1"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

# Mobile clients hold presence sockets and poll; keep idle connections a little longer.
keepalive = 5

# Kill a worker that hasn't responded in 120 s.
timeout = 120

# stdout only; the platform collects it.
loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

# Wait up to 30 s for in-flight requests to finish on restart.
graceful_timeout = 30
