import logging

from celery import shared_task

from .services import run_video_job

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def process_video(self, video_pk: str):
    # no retries: a failed job is terminal and its upload is already gone
    logger.info("Task %s processing video %s", self.request.id, video_pk)
    return run_video_job(video_pk)
