import logging
import shutil
import warnings
from pathlib import Path

from .exceptions import CleanupWarning

logger = logging.getLogger(__name__)


def _warn(message: str):
    logger.warning(message)
    warnings.warn(message, CleanupWarning, stacklevel=3)


class Janitor:
    """
    Removes local staging artifacts and remote packages.

    Nothing here raises: a failed deletion is logged and reported as a
    CleanupWarning so it can never replace a job's own result.
    """

    def __init__(self, store=None, *, key_prefix: str = "videos"):
        self.store = store
        self.key_prefix = key_prefix.strip("/")

    def clean_local(self, *paths) -> None:
        for raw in paths:
            if not raw:
                continue
            path = Path(raw)
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink(missing_ok=True)
            except FileNotFoundError:
                pass
            except OSError as e:
                _warn(f"Could not remove {path}: {e}")

    def delete_remote(self, job_id: str) -> int:
        """
        Delete every object stored for a job, segments included.
        Returns the number of deleted objects; an unknown id deletes nothing.
        """
        if self.store is None:
            raise RuntimeError("Janitor has no object store")

        prefix = f"{self.key_prefix}/{job_id}/"
        try:
            keys = self.store.list_keys(prefix)
            if not keys:
                logger.info("Nothing stored under %s", prefix)
                return 0
            deleted = self.store.delete_keys(keys)
        except Exception as e:
            _warn(f"Remote deletion under {prefix} failed: {e}")
            return 0

        logger.info("Deleted %d/%d objects under %s", deleted, len(keys), prefix)
        return deleted
