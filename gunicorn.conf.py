# gunicorn.conf.py
# Serves the trial-end notice API. The daily job runs in the scheduler worker, not here.
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

wsgi_app = "trial_notifier.api:create_app()"
worker_class = "uvicorn.workers.UvicornWorker"
# build the app in the master so a bad APP_TZ or DATABASE_URL stops boot once
preload_app = True

# the API only serves health checks, preview and manual runs
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
# a manual run sends every due notice inside one request
timeout = int(os.getenv("API_TIMEOUT", "300"))
graceful_timeout = int(os.getenv("API_GRACEFUL_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
