"""Celery application factory for async processing."""

import ssl

from celery import Celery

from catalog_ingest.core.config import get_settings

settings = get_settings()

broker_url = settings.celery_broker_url or settings.redis_url
backend_url = settings.celery_result_url or settings.redis_url

# Convert redis:// to rediss:// for Upstash domains to enable SSL
if ".upstash.io" in broker_url and broker_url.startswith("redis://"):
    broker_url = broker_url.replace("redis://", "rediss://", 1)
if ".upstash.io" in backend_url and backend_url.startswith("redis://"):
    backend_url = backend_url.replace("redis://", "rediss://", 1)
is_ssl = broker_url.startswith("rediss://") or backend_url.startswith("rediss://")

# The Redis result backend reads ssl_cert_reqs from the URL during init
if is_ssl:
    ssl_param = "ssl_cert_reqs=none"
    if "ssl_cert_reqs" not in broker_url:
        separator = "&" if "?" in broker_url else "?"
        broker_url = f"{broker_url}{separator}{ssl_param}"
    if "ssl_cert_reqs" not in backend_url:
        separator = "&" if "?" in backend_url else "?"
        backend_url = f"{backend_url}{separator}{ssl_param}"

celery_app = Celery(
    "catalog_ingest",
    broker=broker_url,
    backend=backend_url,
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_acks_late": True,  # Acknowledge after task completion
    "task_reject_on_worker_lost": True,  # Re-queue if worker dies
    "worker_prefetch_multiplier": 1,  # One import per worker process at a time
    "task_time_limit": settings.import_task_time_limit,
    "task_soft_time_limit": max(60, settings.import_task_time_limit - 300),
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    "result_backend_always_retry": True,
    "result_backend_max_retries": 3,
    "task_default_queue": "imports",
    "task_routes": {
        "catalog_ingest.workers.tasks.import_products": {"queue": "imports"},
        "catalog_ingest.workers.tasks.reap_stale_import_jobs": {"queue": "maintenance"},
        "catalog_ingest.workers.tasks.purge_expired_import_jobs": {"queue": "maintenance"},
    },
    "beat_schedule": {
        "reap-stale-import-jobs": {
            "task": "catalog_ingest.workers.tasks.reap_stale_import_jobs",
            "schedule": 300.0,
        },
        "purge-expired-import-jobs": {
            "task": "catalog_ingest.workers.tasks.purge_expired_import_jobs",
            "schedule": 6 * 3600.0,
        },
    },
}

if is_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config["broker_use_ssl"] = ssl_dict
    celery_config["redis_backend_use_ssl"] = ssl_dict
    celery_config["broker_transport_options"] = ssl_dict.copy()
    celery_config["result_backend_transport_options"] = ssl_dict.copy()

celery_app.conf.update(celery_config)

# Tasks use @celery_app.task, so importing them registers them
from catalog_ingest.workers.tasks import import_products, maintenance  # noqa: E402,F401
