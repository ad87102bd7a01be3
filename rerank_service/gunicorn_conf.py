# rerank_service/gunicorn_conf.py
# Usage: gunicorn -c rerank_service/gunicorn_conf.py rerank_service.main:app
import os

from rerank_service.core.config import settings

# --- Server Mechanics ---
bind = f"0.0.0.0:{settings.PORT}"

# --- Worker Processes ---
# Each worker loads its own copy of the model. RERANK_WORKERS is already forced
# to 1 when the model runs on CUDA.
workers = settings.WORKERS

worker_class = 'uvicorn.workers.UvicornWorker'
worker_tmp_dir = "/dev/shm" if os.path.isdir("/dev/shm") else None

# --- Logging ---
# Gunicorn's own messages. Application logs are handled by structlog.
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info').lower()
accesslog = '-'
errorlog = '-'

proc_name = 'rerank-service'

# --- Timeouts ---
# Model loading happens in the worker lifespan; keep the worker timeout generous.
timeout = int(os.environ.get('GUNICORN_TIMEOUT', '120'))
graceful_timeout = int(os.environ.get('GUNICORN_GRACEFUL_TIMEOUT', '30'))
keepalive = int(os.environ.get('GUNICORN_KEEPALIVE', '5'))

raw_env = [
    f"RERANK_LOG_LEVEL={settings.LOG_LEVEL}",
]
