# Gunicorn settings for the stepup API
import os

wsgi_app = "stepup:create_app()"

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
# more than one worker needs REDIS_URL: the in-process OTP store is per worker
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by the container runtime)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Trust proxy headers
forwarded_allow_ips = "*"
proxy_protocol = False
