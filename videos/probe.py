import asyncio
import json
import logging
import math
from pathlib import Path

from .exceptions import ProbeError

logger = logging.getLogger(__name__)


def format_duration(duration_seconds: float) -> dict:
    """Split seconds into whole hours/minutes/seconds plus an HH:MM:SS string."""
    total = max(0, math.floor(duration_seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    seconds = total % 60
    return {
        "hours": hours,
        "minutes": minutes,
        "seconds": seconds,
        "formatted": f"{hours:02d}:{minutes:02d}:{seconds:02d}",
    }


def parse_duration(raw_output: str) -> float:
    """Read format.duration out of ffprobe's JSON output."""
    try:
        info = json.loads(raw_output or "{}")
    except json.JSONDecodeError as e:
        raise ProbeError("Could not parse ffprobe output", detail=str(e))

    raw = (info.get("format") or {}).get("duration")
    try:
        duration = float(raw)
    except (TypeError, ValueError):
        raise ProbeError("Source has no readable duration", detail=f"format.duration={raw!r}")

    if not math.isfinite(duration) or duration <= 0:
        raise ProbeError("Source has no readable duration", detail=f"format.duration={raw!r}")
    return duration


async def probe_duration(source_path, *, ffprobe_path: str = "ffprobe", timeout: float = 30) -> float:
    """
    Return the playback duration of a local media file in seconds.

    Raises ProbeError when the file is missing, ffprobe cannot decode it,
    or ffprobe does not finish within `timeout` seconds.
    """
    source = Path(source_path)
    if not source.is_file():
        raise ProbeError(f"Source file not found: {source.name}")

    cmd = [
        ffprobe_path,
        "-v", "error",
        "-show_format",
        "-print_format", "json",
        str(source),
    ]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise ProbeError("ffprobe executable not found", detail=ffprobe_path)
    except OSError as e:
        raise ProbeError("ffprobe could not be started", detail=f"{ffprobe_path}: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ProbeError(f"ffprobe timed out after {timeout}s")

    if proc.returncode != 0:
        err = stderr.decode("utf-8", errors="ignore").strip() or "Unknown ffprobe error"
        logger.warning("ffprobe failed (code %s) for %s: %s", proc.returncode, source.name, err)
        raise ProbeError("Source could not be decoded", detail=err[:4000])

    duration = parse_duration(stdout.decode("utf-8", errors="ignore"))
    logger.info("Probed %s: %.3fs", source.name, duration)
    return duration
