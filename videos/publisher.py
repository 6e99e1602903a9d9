import asyncio
import logging

from .exceptions import PublishError
from .manifest import MASTER_FILENAME

logger = logging.getLogger(__name__)


class Publisher:
    """
    Uploads a job's HLS package under <key_prefix>/<job_id>/.

    Order: master playlist, then per rendition its playlist followed by its
    segments. Segments of one rendition upload concurrently, bounded by
    `concurrency`. If any upload fails, keys already written by this publish
    are deleted again before PublishError is raised.
    """

    def __init__(self, store, *, key_prefix: str = "videos", concurrency: int = 8):
        self.store = store
        self.key_prefix = key_prefix.strip("/")
        self.concurrency = max(1, concurrency)

    def key_for(self, job_id: str, filename: str) -> str:
        return f"{self.key_prefix}/{job_id}/{filename}"

    async def publish(self, job_id: str, outcome) -> dict:
        uploaded = []
        try:
            return await self._publish(job_id, outcome, uploaded)
        except Exception as e:
            logger.error("Publish of job %s failed after %d uploads: %s", job_id, len(uploaded), e)
            await asyncio.to_thread(self._rollback, job_id, uploaded)
            if isinstance(e, PublishError):
                raise
            raise PublishError(f"Upload failed: {e}", detail=repr(e)) from e

    async def _publish(self, job_id, outcome, uploaded) -> dict:
        locator = {}
        master = outcome.output_dir / MASTER_FILENAME
        locator["master"] = await self._upload(master, self.key_for(job_id, master.name), uploaded)

        sem = asyncio.Semaphore(self.concurrency)

        async def upload_segment(path):
            async with sem:
                await self._upload(path, self.key_for(job_id, path.name), uploaded)

        for artifact in outcome.artifacts:
            index = artifact.index_path
            locator[artifact.spec.label] = await self._upload(index, self.key_for(job_id, index.name), uploaded)

            results = await asyncio.gather(
                *(upload_segment(p) for p in artifact.segment_paths),
                return_exceptions=True,
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                raise PublishError(
                    f"Upload failed for {len(errors)} segment(s) of {artifact.spec.label}p: {errors[0]}",
                    detail=repr(errors[0]),
                )
            logger.info(
                "Published %sp for job %s (%d segments)",
                artifact.spec.label, job_id, len(artifact.segment_paths),
            )
        return locator

    async def _upload(self, path, key, uploaded) -> str:
        url = await asyncio.to_thread(self.store.upload_file, path, key)
        uploaded.append(key)
        return url

    def _rollback(self, job_id, keys):
        if not keys:
            return
        try:
            self.store.delete_keys(keys)
        except Exception as e:
            logger.warning("Rollback of job %s left %d objects behind: %s", job_id, len(keys), e)
        else:
            logger.info("Rolled back %d objects of job %s", len(keys), job_id)
