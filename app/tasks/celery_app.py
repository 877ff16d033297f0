# app/tasks/celery_app.py
from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks.notifications"],
)

celery_app.conf.task_routes = {
    "app.tasks.notifications.*": {"queue": "notifications"},
}

celery_app.conf.timezone = 'UTC'
