"""
Transcode-and-publish pipeline for one uploaded video.

    probing -> encoding -> publishing -> cleaning -> completed
                                      (any of them) -> failed

Each stage is awaited in order. The encoder's progress ticks are forwarded to
the notifier while the encode is still running. Local staging is removed
whatever the outcome.
"""

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .encoder import Encoder
from .exceptions import EncodeError, PipelineError
from .ladder import DEFAULT_LADDER, validate_ladder
from .manifest import write_master_playlist
from .models import check_transition
from .notifier import NullNotifier
from .probe import format_duration, probe_duration

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Video processing complete"

# progress is saved to the job record every this many percent
PROGRESS_SAVE_STEP = 5


@dataclass
class JobContext:
    job_id: str
    source_path: str
    subscribed: bool = False
    status: str = "probing"
    progress: int = 0
    duration: dict = field(default_factory=dict)
    urls: dict = field(default_factory=dict)
    error: str = ""
    saved_progress: int = field(default=0, repr=False, compare=False)

    def advance(self, target: str) -> None:
        check_transition(self.status, target)
        self.status = target

    def result(self) -> dict:
        return {
            "success": True,
            "message": SUCCESS_MESSAGE,
            "id": self.job_id,
            "duration": self.duration.get("formatted"),
            "durationDetails": self.duration,
            "urls": self.urls,
        }


class TranscodePipeline:
    def __init__(
        self,
        *,
        publisher,
        janitor,
        output_root,
        notifier=None,
        encoder: Optional[Encoder] = None,
        prober: Optional[Callable] = None,
        ladder=DEFAULT_LADDER,
    ):
        self.publisher = publisher
        self.janitor = janitor
        self.output_root = Path(output_root)
        self.notifier = notifier or NullNotifier()
        self.encoder = encoder or Encoder()
        self.prober = prober or probe_duration
        self.ladder = validate_ladder(ladder)

    def staging_dir(self, job_id: str) -> Path:
        return self.output_root / job_id

    async def run(
        self,
        job: JobContext,
        *,
        on_transition: Optional[Callable] = None,
        on_progress: Optional[Callable] = None,
    ) -> dict:
        """
        Run every stage for `job` and return the upload response payload.

        `on_transition(job)` (sync or async) is called after each status
        change; `on_progress(job)` every PROGRESS_SAVE_STEP percent of the
        encode. Pipeline failures mark the job failed and are re-raised.
        """
        output_dir = self.staging_dir(job.job_id)
        transition = functools.partial(self._transition, job, on_transition)
        logger.info("Job %s: starting for %s", job.job_id, Path(job.source_path).name)

        try:
            # a previous job with the same id may have left files behind
            await asyncio.to_thread(self.janitor.clean_local, output_dir)

            seconds = await self.prober(job.source_path)
            job.duration = format_duration(seconds)

            await transition("encoding")
            outcome = await self.encoder.encode(
                job.source_path,
                self.ladder,
                output_dir,
                duration=seconds,
                on_progress=functools.partial(self._on_progress, job, on_progress),
            )
            try:
                write_master_playlist(output_dir, self.ladder)
            except OSError as e:
                raise EncodeError("Could not write master playlist", detail=str(e))

            await transition("publishing")
            # a reused id replaces its earlier package entirely
            if self.janitor.store is not None:
                await asyncio.to_thread(self.janitor.delete_remote, job.job_id)
            job.urls = await self.publisher.publish(job.job_id, outcome)

            await transition("cleaning")
        except Exception as e:
            job.error = e.message if isinstance(e, PipelineError) else str(e)
            logger.error("Job %s failed while %s: %s", job.job_id, job.status, job.error)
            await transition("failed")
            raise
        finally:
            await asyncio.to_thread(self.janitor.clean_local, output_dir, job.source_path)

        job.progress = 100
        await transition("completed")
        result = job.result()
        if job.subscribed:
            await asyncio.to_thread(self.notifier.completed, job.job_id, result)
        logger.info("Job %s: completed (%s)", job.job_id, job.duration.get("formatted"))
        return result

    async def _on_progress(self, job: JobContext, hook, percent: int):
        job.progress = percent
        if job.subscribed:
            await asyncio.to_thread(self.notifier.progress, job.job_id, percent)
        if percent - job.saved_progress >= PROGRESS_SAVE_STEP or (percent == 100 and job.saved_progress < 100):
            job.saved_progress = percent
            await _call(hook, job)

    async def _transition(self, job: JobContext, hook, target: str):
        job.advance(target)
        await _call(hook, job)


async def _call(hook, job):
    if hook is None:
        return
    result = hook(job)
    if inspect.isawaitable(result):
        await result
