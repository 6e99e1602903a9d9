from pathlib import Path

MASTER_FILENAME = "master.m3u8"
MASTER_HEADER = "#EXTM3U"
STREAM_INF = "#EXT-X-STREAM-INF:"


def render_master_playlist(ladder) -> str:
    """Master playlist text: header, then one STREAM-INF + URI pair per rendition, ladder order."""
    lines = [MASTER_HEADER]
    for spec in ladder:
        lines.append(f"{STREAM_INF}BANDWIDTH={spec.bandwidth},RESOLUTION={spec.resolution}")
        lines.append(spec.index_filename)
    return "\n".join(lines) + "\n"


def write_master_playlist(output_dir, ladder) -> Path:
    path = Path(output_dir) / MASTER_FILENAME
    path.write_text(render_master_playlist(ladder), encoding="utf-8")
    return path


def parse_master_playlist(text: str) -> list:
    """
    Return [(bandwidth, resolution, uri), ...] from a master playlist.
    Only the attributes this service writes are understood.
    """
    entries = []
    pending = None
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith(STREAM_INF):
            attrs = dict(
                part.split("=", 1) for part in line[len(STREAM_INF):].split(",") if "=" in part
            )
            pending = (int(attrs["BANDWIDTH"]), attrs.get("RESOLUTION", ""))
        elif not line.startswith("#") and pending is not None:
            entries.append((pending[0], pending[1], line))
            pending = None
    return entries
