import pytest
from hypothesis import given, settings, strategies as st

from videos.ladder import DEFAULT_LADDER, RenditionSpec, validate_ladder
from videos.manifest import (
    MASTER_FILENAME,
    parse_master_playlist,
    render_master_playlist,
    write_master_playlist,
)


def spec(label, resolution="640x360", rate=800):
    return RenditionSpec(label=label, resolution=resolution, video_bitrate=rate,
                         max_bitrate=rate + 56, buffer_size=rate + 400)


class TestLadder:
    def test_default_ladder_order(self):
        assert [s.label for s in DEFAULT_LADDER] == ["360", "420", "720", "1080"]
        assert [s.resolution for s in DEFAULT_LADDER] == ["640x360", "740x420", "1280x720", "1920x1080"]

    def test_naming(self):
        s = DEFAULT_LADDER[2]
        assert s.index_filename == "720p.m3u8"
        assert s.segment_pattern == "720p_%03d.ts"
        assert s.segment_filename(7) == "720p_007.ts"
        assert s.segment_filename(1234) == "720p_1234.ts"
        assert s.bandwidth == 2_800_000

    @pytest.mark.parametrize("name,owned", [
        ("720p_000.ts", True),
        ("720p_1000.ts", True),
        ("1720p_000.ts", False),
        ("720p_abc.ts", False),
        ("720p.m3u8", False),
        ("720p_001.ts.tmp", False),
    ])
    def test_owns_segment(self, name, owned):
        assert DEFAULT_LADDER[2].owns_segment(name) is owned

    def test_segment_names_never_collide_across_renditions(self):
        for a in DEFAULT_LADDER:
            for b in DEFAULT_LADDER:
                if a is not b:
                    assert not b.owns_segment(a.segment_filename(3))

    def test_validate_rejects_duplicates(self):
        with pytest.raises(ValueError, match="Duplicate"):
            validate_ladder([spec("360"), spec("360")])

    @pytest.mark.parametrize("bad", [
        [],
        [spec("360", resolution="640:360")],
        [spec("360", rate=0)],
    ])
    def test_validate_rejects_unencodable(self, bad):
        with pytest.raises(ValueError):
            validate_ladder(bad)


class TestMasterPlaylist:
    def test_exact_text_for_default_ladder(self):
        assert render_master_playlist(DEFAULT_LADDER) == (
            "#EXTM3U\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360\n"
            "360p.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=1200000,RESOLUTION=740x420\n"
            "420p.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=2800000,RESOLUTION=1280x720\n"
            "720p.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080\n"
            "1080p.m3u8\n"
        )

    def test_write(self, tmp_path):
        path = write_master_playlist(tmp_path, DEFAULT_LADDER)
        assert path == tmp_path / MASTER_FILENAME
        assert path.read_text() == render_master_playlist(DEFAULT_LADDER)

    @given(rates=st.lists(st.integers(min_value=1, max_value=50_000), min_size=1, max_size=8))
    @settings(max_examples=100)
    def test_one_entry_per_rendition_in_ladder_order(self, rates):
        ladder = validate_ladder(
            spec(str(100 + i), resolution=f"{(i + 1) * 16}x{(i + 1) * 9}", rate=r)
            for i, r in enumerate(rates)
        )
        text = render_master_playlist(ladder)
        entries = parse_master_playlist(text)

        assert text.splitlines()[0] == "#EXTM3U"
        assert len(entries) == len(ladder)
        assert [e[0] for e in entries] == [r * 1000 for r in rates]
        assert [e[1] for e in entries] == [s.resolution for s in ladder]
        assert [e[2] for e in entries] == [s.index_filename for s in ladder]
        assert render_master_playlist(ladder) == text
