import stat
import sys
import textwrap
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from videos.exceptions import EncodeError
from videos.janitor import Janitor
from videos.ladder import DEFAULT_LADDER
from videos.encoder import EncodeOutcome, collect_artifacts
from videos.notifier import RecordingNotifier
from videos.pipeline import TranscodePipeline
from videos.publisher import Publisher
from videos.storage import ObjectStore

BUCKET = "test-bucket"
PUBLIC = "http://minio.test"


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the store makes."""

    def __init__(self, fail_on=None):
        self.objects = {}          # key -> content type
        self.upload_order = []
        self.delete_calls = 0
        self.fail_on = fail_on     # predicate(key) -> bool

    def upload_file(self, filename, bucket, key, ExtraArgs=None):
        assert bucket == BUCKET
        if self.fail_on and self.fail_on(key):
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        assert Path(filename).is_file(), filename
        self.objects[key] = (ExtraArgs or {}).get("ContentType")
        self.upload_order.append(key)

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        client = self

        class _Paginator:
            def paginate(self, Bucket, Prefix):
                keys = sorted(k for k in client.objects if k.startswith(Prefix))
                for start in range(0, max(len(keys), 1), 2):
                    page = keys[start:start + 2]
                    yield {"Contents": [{"Key": k} for k in page]} if page else {}

        return _Paginator()

    def delete_objects(self, Bucket, Delete):
        self.delete_calls += 1
        # S3 reports missing keys as deleted too
        for obj in Delete["Objects"]:
            self.objects.pop(obj["Key"], None)
        return {"Deleted": [{"Key": obj["Key"]} for obj in Delete["Objects"]]}

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentType": self.objects[Key]}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn, HttpMethod):
        return f"{PUBLIC}/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"

    def keys_for(self, job_id):
        return sorted(k for k in self.objects if k.startswith(f"videos/{job_id}/"))


class FakeEncoder:
    """Writes a plausible HLS tree instead of running ffmpeg."""

    def __init__(self, segments=3, fail=False, ticks=(0, 37, 37, 80, 100)):
        self.segments = segments
        self.fail = fail
        self.ticks = ticks
        self.calls = 0

    async def encode(self, source_path, ladder, output_dir, *, duration=None, on_progress=None):
        self.calls += 1
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        if self.fail:
            # first rendition finished, second one blew up
            (out / ladder[0].index_filename).write_text("#EXTM3U\n")
            raise EncodeError("Transcoding failed: Conversion failed!", detail="Conversion failed!")
        last = -1
        for pct in self.ticks:
            if pct > last and on_progress is not None:
                last = pct
                await on_progress(pct)
        for spec in ladder:
            (out / spec.index_filename).write_text("#EXTM3U\n#EXT-X-ENDLIST\n")
            for n in range(self.segments):
                (out / spec.segment_filename(n)).write_bytes(b"\x47" * 188)
        return EncodeOutcome(output_dir=out, artifacts=collect_artifacts(out, ladder))


def make_prober(seconds=3661.0, error=None):
    calls = []

    async def prober(path):
        calls.append(path)
        if error is not None:
            raise error
        return seconds

    prober.calls = calls
    return prober


@pytest.fixture(autouse=True)
def _media_dirs(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path / "media"
    settings.HLS_OUTPUT_ROOT = tmp_path / "output"
    settings.S3_BUCKET = BUCKET
    settings.S3_PUBLIC_ENDPOINT = PUBLIC
    settings.S3_VIDEO_PREFIX = "videos"
    settings.PIPELINE_INLINE = True


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def store(s3_client):
    return ObjectStore(s3_client, BUCKET, public_endpoint=PUBLIC)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "uploads" / "clip.mp4"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"not really a video")
    return path


@pytest.fixture
def make_pipeline(store, notifier, tmp_path):
    def _make(encoder=None, prober=None, publisher=None):
        return TranscodePipeline(
            publisher=publisher or Publisher(store, concurrency=4),
            janitor=Janitor(store),
            notifier=notifier,
            encoder=encoder or FakeEncoder(),
            prober=prober or make_prober(),
            ladder=DEFAULT_LADDER,
            output_root=tmp_path / "output",
        )

    return _make


@pytest.fixture
def script(tmp_path):
    """Write an executable Python script usable as a fake ffmpeg/ffprobe binary."""

    def _write(name, body):
        path = tmp_path / "bin" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _write
