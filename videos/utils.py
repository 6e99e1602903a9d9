import os
import re
from pathlib import Path
from uuid import uuid4
from django.conf import settings

# job ids end up in object keys, local paths and channel names
JOB_ID_PATTERN = r"^[A-Za-z0-9_-]{1,128}$"
ARTIFACT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*\.(m3u8|ts)$")


def save_uploaded_file(djangofile) -> Path:
    """Save to MEDIA_ROOT/uploads/<uuid>_<name> and return the absolute path."""
    uploads_dir = Path(settings.MEDIA_ROOT) / "uploads"
    uploads_dir.mkdir(parents=True, exist_ok=True)
    safe_name = f"{uuid4().hex}_{os.path.basename(djangofile.name)}"
    dest = uploads_dir / safe_name
    with open(dest, "wb") as f:
        for chunk in djangofile.chunks():
            f.write(chunk)
    return dest


def new_job_id() -> str:
    return uuid4().hex


def is_artifact_name(filename: str) -> bool:
    return bool(ARTIFACT_NAME_PATTERN.match(filename or ""))
