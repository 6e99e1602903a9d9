"""
Quality ladder: the renditions every job produces, in declaration order.

Bitrates are kbit/s. The master playlist advertises video_bitrate * 1000.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RenditionSpec:
    label: str              # "720" -> 720p.m3u8, 720p_000.ts, ...
    resolution: str         # "WxH"
    video_bitrate: int
    max_bitrate: int
    buffer_size: int

    @property
    def index_filename(self) -> str:
        return f"{self.label}p.m3u8"

    @property
    def segment_pattern(self) -> str:
        # ffmpeg sequence pattern for -hls_segment_filename
        return f"{self.label}p_%03d.ts"

    @property
    def segment_prefix(self) -> str:
        return f"{self.label}p_"

    @property
    def bandwidth(self) -> int:
        """Bits per second, as advertised in the master playlist."""
        return self.video_bitrate * 1000

    def segment_filename(self, sequence: int) -> str:
        return f"{self.label}p_{sequence:03d}.ts"

    def owns_segment(self, filename: str) -> bool:
        if not (filename.startswith(self.segment_prefix) and filename.endswith(".ts")):
            return False
        return filename[len(self.segment_prefix):-3].isdigit()


DEFAULT_LADDER = (
    RenditionSpec(label="360", resolution="640x360", video_bitrate=800, max_bitrate=856, buffer_size=1200),
    RenditionSpec(label="420", resolution="740x420", video_bitrate=1200, max_bitrate=1298, buffer_size=1800),
    RenditionSpec(label="720", resolution="1280x720", video_bitrate=2800, max_bitrate=2996, buffer_size=4200),
    RenditionSpec(label="1080", resolution="1920x1080", video_bitrate=5000, max_bitrate=5350, buffer_size=7500),
)


def validate_ladder(ladder) -> tuple:
    """
    Return the ladder as a tuple after checking it can be encoded:
    non-empty, unique labels, WxH resolutions, positive rates.
    """
    ladder = tuple(ladder)
    if not ladder:
        raise ValueError("Quality ladder must contain at least one rendition")

    seen = set()
    for spec in ladder:
        if spec.label in seen:
            raise ValueError(f"Duplicate rendition label: {spec.label}")
        seen.add(spec.label)

        w, sep, h = spec.resolution.partition("x")
        if not (sep and w.isdigit() and h.isdigit()):
            raise ValueError(f"Bad resolution for {spec.label}: {spec.resolution!r}")
        if min(spec.video_bitrate, spec.max_bitrate, spec.buffer_size) <= 0:
            raise ValueError(f"Rates must be positive for rendition {spec.label}")
    return ladder
