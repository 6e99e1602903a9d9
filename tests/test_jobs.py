from unittest.mock import patch

import pytest
from asgiref.sync import sync_to_async

from videos.exceptions import EncodeError, JobConflictError
from videos.models import Video, can_transition
from videos.services import abandon_job, create_job, run_video_job

from .conftest import FakeEncoder


@pytest.mark.parametrize("current,target,allowed", [
    ("probing", "encoding", True),
    ("encoding", "publishing", True),
    ("publishing", "cleaning", True),
    ("cleaning", "completed", True),
    ("probing", "failed", True),
    ("cleaning", "failed", True),
    ("probing", "publishing", False),
    ("publishing", "encoding", False),
    ("completed", "failed", False),
    ("failed", "probing", False),
    ("encoding", "encoding", False),
])
def test_status_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


@pytest.mark.django_db
class TestCreateJob:
    def test_generates_id_when_absent(self, source_file):
        video = create_job(source_file)
        assert len(video.job_id) == 32
        assert video.status == Video.Status.PROBING
        assert video.subscribed is False

    def test_caller_supplied_id(self, source_file):
        video = create_job(source_file, "sock-1", subscribed=True)
        assert video.job_id == "sock-1"
        assert video.subscribed is True

    def test_rejects_id_in_flight(self, source_file):
        create_job(source_file, "sock-1")
        with pytest.raises(JobConflictError):
            create_job(source_file, "sock-1")

    @pytest.mark.parametrize("status", ["completed", "failed"])
    def test_finished_id_can_be_reused(self, source_file, status):
        first = create_job(source_file, "sock-1")
        Video.objects.filter(pk=first.pk).update(status=status)

        second = create_job(source_file, "sock-1")
        assert second.pk != first.pk


@pytest.mark.django_db(transaction=True)
class TestRunVideoJob:
    def test_success_is_persisted(self, make_pipeline, source_file):
        video = create_job(source_file, "sock-1", subscribed=True)

        result = run_video_job(video.pk, pipeline=make_pipeline())

        video.refresh_from_db()
        assert video.status == "completed"
        assert video.progress == 100
        assert video.duration["formatted"] == result["duration"] == "01:01:01"
        assert video.urls == result["urls"]
        assert video.error == ""

    def test_failure_is_persisted(self, make_pipeline, source_file):
        video = create_job(source_file)

        with pytest.raises(EncodeError):
            run_video_job(video.pk, pipeline=make_pipeline(encoder=FakeEncoder(fail=True)))

        video.refresh_from_db()
        assert video.status == "failed"
        assert video.error.startswith("Transcoding failed")
        assert video.urls == {}
        # the id is free again
        create_job(source_file, video.job_id)

    def test_progress_is_saved_while_encoding(self, make_pipeline, source_file):
        video = create_job(source_file, "sock-1")
        saved = []

        class WatchingEncoder(FakeEncoder):
            async def encode(self, *args, on_progress=None, **kwargs):
                async def watch(pct):
                    await on_progress(pct)
                    saved.append(await sync_to_async(lambda: Video.objects.get(pk=video.pk).progress)())

                return await super().encode(*args, on_progress=watch, **kwargs)

        run_video_job(video.pk, pipeline=make_pipeline(encoder=WatchingEncoder()))

        assert saved == [0, 37, 80, 100]

    def test_setup_failure_fails_the_job(self, source_file):
        video = create_job(source_file, "sock-1")

        with patch("videos.services.build_pipeline", side_effect=RuntimeError("no bucket")):
            with pytest.raises(RuntimeError):
                run_video_job(video.pk)

        video.refresh_from_db()
        assert video.status == "failed"
        assert "no bucket" in video.error
        assert not source_file.exists()
        create_job(source_file, "sock-1")


@pytest.mark.django_db
class TestAbandonJob:
    def test_marks_in_flight_job_failed(self, source_file):
        video = create_job(source_file, "sock-1")

        abandon_job(video, "broker down")

        video.refresh_from_db()
        assert video.status == "failed"
        assert video.error == "broker down"
        assert not source_file.exists()

    def test_leaves_finished_job_alone(self, source_file):
        video = create_job(source_file, "sock-1")
        Video.objects.filter(pk=video.pk).update(status="completed")

        abandon_job(video, "late error")

        video.refresh_from_db()
        assert video.status == "completed"
        assert video.error == ""
