"""
Multi-rendition HLS encoding with a single ffmpeg run.

One input, one output per ladder entry. ffmpeg decodes the source once and
reports aggregate progress on stdout (-progress pipe:1), which is turned
into integer percent ticks for the caller.
"""

import asyncio
import contextlib
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .exceptions import EncodeError

logger = logging.getLogger(__name__)

VIDEO_CODEC = "libx264"
AUDIO_CODEC = "aac"
STDERR_TAIL_LINES = 40


@dataclass(frozen=True)
class RenditionArtifact:
    spec: object
    index_path: Path
    segment_paths: tuple = ()


@dataclass(frozen=True)
class EncodeOutcome:
    output_dir: Path
    artifacts: tuple = field(default_factory=tuple)


def build_command(
    source_path,
    ladder,
    output_dir,
    *,
    ffmpeg_path: str = "ffmpeg",
    segment_seconds: int = 2,
) -> list:
    out = Path(output_dir)
    cmd = [
        ffmpeg_path,
        "-hide_banner",
        "-nostats",
        "-loglevel", "error",
        "-y",
        "-progress", "pipe:1",
        "-i", str(source_path),
    ]
    for spec in ladder:
        cmd.extend([
            "-c:v", VIDEO_CODEC,
            "-c:a", AUDIO_CODEC,
            "-s", spec.resolution,
            "-b:v", f"{spec.video_bitrate}k",
            "-maxrate:v", f"{spec.max_bitrate}k",
            "-bufsize:v", f"{spec.buffer_size}k",
            "-hls_time", str(segment_seconds),
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(out / spec.segment_pattern),
            str(out / spec.index_filename),
        ])
    return cmd


def parse_progress_percent(out_time_us, duration: Optional[float]) -> int:
    """Floor of elapsed/total as a percent in [0, 100]; 0 when unknown."""
    try:
        elapsed = float(out_time_us) / 1_000_000
    except (TypeError, ValueError):
        return 0
    if not duration or duration <= 0 or elapsed <= 0:
        return 0
    return max(0, min(100, int(elapsed * 100 // duration)))


def collect_artifacts(output_dir, ladder) -> tuple:
    """
    Gather each rendition's index and its segments (ordered by sequence).
    A rendition without an index file means the encode did not finish it.
    """
    out = Path(output_dir)
    names = sorted(p.name for p in out.iterdir() if p.is_file()) if out.is_dir() else []

    artifacts = []
    for spec in ladder:
        index_path = out / spec.index_filename
        if not index_path.is_file():
            raise EncodeError(f"Rendition {spec.label}p produced no playlist")
        segments = sorted(
            (n for n in names if spec.owns_segment(n)),
            key=lambda n: int(n[len(spec.segment_prefix):-3]),
        )
        artifacts.append(RenditionArtifact(
            spec=spec,
            index_path=index_path,
            segment_paths=tuple(out / n for n in segments),
        ))
    return tuple(artifacts)


class Encoder:
    def __init__(self, ffmpeg_path: str = "ffmpeg", segment_seconds: int = 2):
        self.ffmpeg_path = ffmpeg_path
        self.segment_seconds = segment_seconds

    async def encode(
        self,
        source_path,
        ladder,
        output_dir,
        *,
        duration: Optional[float] = None,
        on_progress: Optional[Callable] = None,
    ) -> EncodeOutcome:
        """
        Encode every rendition in one ffmpeg run and return the artifacts.

        `on_progress(percent)` may be a plain function or a coroutine
        function; it is called once per increase of the aggregate percent.
        Any failure raises EncodeError and nothing is returned.
        """
        out = Path(output_dir)
        try:
            out.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncodeError("Could not create output directory", detail=str(e))
        cmd = build_command(
            source_path, ladder, out,
            ffmpeg_path=self.ffmpeg_path,
            segment_seconds=self.segment_seconds,
        )
        logger.debug("Running %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise EncodeError("ffmpeg executable not found", detail=self.ffmpeg_path)
        except OSError as e:
            raise EncodeError("ffmpeg could not be started", detail=f"{self.ffmpeg_path}: {e}")

        stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        try:
            await asyncio.gather(
                self._read_progress(proc.stdout, duration, on_progress),
                self._drain(proc.stderr, stderr_tail),
            )
        except BaseException:
            # a failing progress callback or a cancelled job must not leave ffmpeg running
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise
        returncode = await proc.wait()

        if returncode != 0:
            err = "\n".join(stderr_tail).strip() or f"ffmpeg exited with code {returncode}"
            logger.error("ffmpeg failed (code %s): %s", returncode, err)
            raise EncodeError(f"Transcoding failed: {err.splitlines()[-1]}", detail=err)

        artifacts = collect_artifacts(out, ladder)
        logger.info(
            "Encoded %d renditions into %s (%d segments)",
            len(artifacts), out, sum(len(a.segment_paths) for a in artifacts),
        )
        return EncodeOutcome(output_dir=out, artifacts=artifacts)

    async def _read_progress(self, stream, duration, on_progress):
        last = -1
        async for raw in stream:
            key, _, value = raw.decode("utf-8", errors="ignore").strip().partition("=")
            if key in ("out_time_us", "out_time_ms"):
                # out_time_ms is also microseconds in ffmpeg's progress output
                percent = parse_progress_percent(value, duration)
            elif key == "progress" and value == "end":
                percent = 100
            else:
                continue

            if percent > last:
                last = percent
                if on_progress is not None:
                    result = on_progress(percent)
                    if inspect.isawaitable(result):
                        await result

    async def _drain(self, stream, tail):
        async for raw in stream:
            line = raw.decode("utf-8", errors="ignore").rstrip()
            if line:
                tail.append(line)
