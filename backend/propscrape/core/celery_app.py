"""
Celery configuration for background scrape jobs
"""
from celery import Celery
from propscrape.core.config import settings

# Create Celery instance
celery_app = Celery(
    "property_scraper",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["propscrape.modules.scraper.tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # A crawl may poll for CRAWL_MAX_POLL_ATTEMPTS * CRAWL_POLL_INTERVAL_SECONDS
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    # Never replay a scrape after a lost worker
    task_acks_late=False,
    task_reject_on_worker_lost=False,
)
