import logging

from django.conf import settings
from django.shortcuts import redirect
from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .exceptions import JobConflictError, PipelineError
from .janitor import Janitor
from .manifest import MASTER_FILENAME
from .models import Video
from .serializers import DeleteVideoSerializer, UploadSerializer, VideoSerializer, first_error
from .services import abandon_job, create_job, delete_video, run_video_job
from .storage import get_object_store, video_prefix
from .tasks import process_video
from .utils import is_artifact_name, save_uploaded_file

logger = logging.getLogger(__name__)


def _failure(message: str, http_status: int) -> Response:
    return Response({"success": False, "message": message}, status=http_status)


class UploadVideoView(views.APIView):
    """
    Receives a video, registers a job and runs the transcode pipeline.

    With PIPELINE_INLINE the response carries the finished package;
    otherwise the job is queued and progress/completion arrive on the
    job's progress channel.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        if "video" not in request.FILES:
            return _failure("No file uploaded.", status.HTTP_400_BAD_REQUEST)

        ser = UploadSerializer(data=request.data)
        if not ser.is_valid():
            return _failure(first_error(ser.errors), status.HTTP_400_BAD_REQUEST)

        socket_id = ser.validated_data.get("socketId") or None
        source = save_uploaded_file(ser.validated_data["video"])
        try:
            video = create_job(source, socket_id, subscribed=socket_id is not None)
        except JobConflictError as e:
            Janitor().clean_local(source)
            return _failure(str(e), status.HTTP_409_CONFLICT)

        if not settings.PIPELINE_INLINE:
            try:
                process_video.delay(str(video.pk))
            except Exception as e:
                logger.exception("Could not queue job %s", video.job_id)
                abandon_job(video, f"Could not queue job: {e}")
                return _failure("Could not queue video for processing", status.HTTP_500_INTERNAL_SERVER_ERROR)
            return Response(
                {"success": True, "message": "Video queued for processing", "id": video.job_id},
                status=status.HTTP_202_ACCEPTED,
            )

        try:
            result = run_video_job(video.pk)
        except PipelineError as e:
            logger.error("Upload %s failed: %s", video.job_id, e.detail or e.message)
            return _failure(e.message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        except Exception as e:
            logger.exception("Upload %s failed", video.job_id)
            abandon_job(video, str(e) or e.__class__.__name__)
            return _failure("Video processing failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(result, status=status.HTTP_200_OK)


class GetVideoView(views.APIView):
    """Redirects to a time-limited URL for one stored artifact of a job."""
    permission_classes = [AllowAny]
    authentication_classes = []

    not_found = "File not found"

    def get(self, request, id, filename):
        if not is_artifact_name(filename):
            return Response({"detail": self.not_found}, status=404)

        store = get_object_store()
        key = video_prefix(id) + filename
        if not store.exists(key):
            return Response({"detail": self.not_found}, status=404)
        return redirect(store.presigned_get(key))


class MasterPlaylistView(GetVideoView):
    not_found = "Playlist not found"

    def get(self, request, id):
        return super().get(request, id, MASTER_FILENAME)


class DeleteVideoView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def delete(self, request):
        if not request.data.get("id"):
            return _failure("Video ID is required", status.HTTP_400_BAD_REQUEST)

        ser = DeleteVideoSerializer(data=request.data)
        if not ser.is_valid():
            return _failure(first_error(ser.errors), status.HTTP_400_BAD_REQUEST)

        deleted = delete_video(ser.validated_data["id"])
        return Response(
            {"success": True, "message": "Video deleted successfully", "deleted": deleted},
            status=status.HTTP_200_OK,
        )


class JobDetailView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, job_id):
        video = Video.objects.filter(job_id=job_id).order_by("-created_at").first()
        if video is None:
            return Response({"detail": "Not found"}, status=404)
        return Response(VideoSerializer(video).data)
