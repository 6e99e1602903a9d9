from rest_framework import serializers
from .models import Video
from .utils import JOB_ID_PATTERN


class VideoSerializer(serializers.ModelSerializer):
    class Meta:
        model = Video
        fields = [
            "job_id",
            "status",
            "progress",
            "duration",
            "urls",
            "error",
            "created_at",
            "updated_at",
        ]


class UploadSerializer(serializers.Serializer):
    video = serializers.FileField()
    # progress channel key; also used as the job id when given
    socketId = serializers.RegexField(JOB_ID_PATTERN, required=False, allow_blank=True)


class DeleteVideoSerializer(serializers.Serializer):
    id = serializers.RegexField(JOB_ID_PATTERN)


def first_error(errors) -> str:
    """Flatten DRF validation errors into one human-readable message."""
    for field, messages in errors.items():
        if isinstance(messages, (list, tuple)) and messages:
            return f"{field}: {messages[0]}"
        return f"{field}: {messages}"
    return "Invalid request."
