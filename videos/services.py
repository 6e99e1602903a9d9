import functools
import logging

from asgiref.sync import async_to_sync, sync_to_async
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .encoder import Encoder
from .exceptions import JobConflictError
from .janitor import Janitor
from .models import ACTIVE_STATUSES, Video
from .notifier import get_notifier
from .pipeline import JobContext, TranscodePipeline
from .probe import probe_duration
from .publisher import Publisher
from .storage import get_object_store
from .utils import new_job_id

logger = logging.getLogger(__name__)


def create_job(source_path, job_id: str | None = None, *, subscribed: bool = False) -> Video:
    """
    Register a job for an upload already on disk.
    Raises JobConflictError while another job with the same id is in flight.
    """
    job_id = job_id or new_job_id()
    try:
        with transaction.atomic():
            if Video.objects.filter(job_id=job_id, status__in=ACTIVE_STATUSES).exists():
                raise JobConflictError(job_id)
            video = Video.objects.create(job_id=job_id, source_path=str(source_path), subscribed=subscribed)
    except IntegrityError:
        # lost the race against a concurrent request with the same id
        raise JobConflictError(job_id)
    logger.info("Created job %s", job_id)
    return video


def build_pipeline(store=None, notifier=None) -> TranscodePipeline:
    store = store or get_object_store()
    return TranscodePipeline(
        publisher=Publisher(
            store,
            key_prefix=settings.S3_VIDEO_PREFIX,
            concurrency=settings.HLS_UPLOAD_CONCURRENCY,
        ),
        janitor=Janitor(store, key_prefix=settings.S3_VIDEO_PREFIX),
        notifier=notifier or get_notifier(),
        encoder=Encoder(settings.FFMPEG_PATH, settings.HLS_SEGMENT_SECONDS),
        prober=functools.partial(
            probe_duration,
            ffprobe_path=settings.FFPROBE_PATH,
            timeout=settings.FFPROBE_TIMEOUT,
        ),
        output_root=settings.HLS_OUTPUT_ROOT,
    )


def _persist(video: Video, job: JobContext):
    video.status = job.status
    video.progress = max(0, min(100, int(job.progress)))
    video.duration = job.duration
    video.urls = job.urls
    video.error = job.error[:4000]
    video.save(update_fields=["status", "progress", "duration", "urls", "error", "updated_at"])


def abandon_job(video: Video, error: str) -> None:
    """
    Fail a job that could not be handed to the pipeline and drop its upload.
    Jobs the pipeline already finished are left as they are.
    """
    updated = Video.objects.filter(pk=video.pk, status__in=ACTIVE_STATUSES).update(
        status=Video.Status.FAILED,
        error=error[:4000],
        updated_at=timezone.now(),
    )
    if updated:
        logger.error("Abandoned job %s: %s", video.job_id, error)
    Janitor().clean_local(video.source_path)


def run_video_job(video_pk, pipeline: TranscodePipeline | None = None) -> dict:
    """
    Run the pipeline for a stored job and keep its record in step.
    Returns the response payload; pipeline errors propagate.
    """
    video = Video.objects.get(pk=video_pk)
    job = JobContext(
        job_id=video.job_id,
        source_path=video.source_path,
        subscribed=video.subscribed,
        status=video.status,
    )
    try:
        pipeline = pipeline or build_pipeline()
    except Exception as e:
        abandon_job(video, f"Pipeline setup failed: {e}")
        raise
    persist = sync_to_async(functools.partial(_persist, video))
    return async_to_sync(pipeline.run)(job, on_transition=persist, on_progress=persist)


def delete_video(job_id: str, store=None) -> int:
    janitor = Janitor(store or get_object_store(), key_prefix=settings.S3_VIDEO_PREFIX)
    return janitor.delete_remote(job_id)
