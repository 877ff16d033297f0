import asyncio

from loguru import logger

from app.services.email import Email
from app.tasks.celery_app import celery_app


@celery_app.task(name="app.tasks.notifications.send_welcome_email")
def send_welcome_email(email: str, name: str, url: str) -> bool:
    sent = asyncio.run(Email(email, name, url).send_welcome())
    if not sent:
        logger.warning(f"Welcome email to {email} was not delivered")
    return sent
