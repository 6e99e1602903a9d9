import uuid
from django.db import models

from .exceptions import InvalidTransition

# forward order of the success path; "failed" may follow any non-terminal state
FLOW = ("probing", "encoding", "publishing", "cleaning", "completed")
TERMINAL_STATUSES = ("completed", "failed")
ACTIVE_STATUSES = ("probing", "encoding", "publishing", "cleaning")


class Video(models.Model):
    class Status(models.TextChoices):
        PROBING = "probing"
        ENCODING = "encoding"
        PUBLISHING = "publishing"
        CLEANING = "cleaning"
        COMPLETED = "completed"
        FAILED = "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job_id = models.CharField(max_length=128, db_index=True)      # storage prefix + progress channel
    source_path = models.CharField(max_length=512)                 # absolute path of the received upload
    subscribed = models.BooleanField(default=False)                # caller supplied a channel key
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PROBING)
    progress = models.PositiveSmallIntegerField(default=0)         # 0..100
    duration = models.JSONField(default=dict, blank=True)          # {hours, minutes, seconds, formatted}
    urls = models.JSONField(default=dict, blank=True)              # {"master": url, "360": url, ...}
    error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["job_id"],
                condition=models.Q(status__in=ACTIVE_STATUSES),
                name="unique_in_flight_job_id",
            ),
        ]

    def __str__(self):
        return f"{self.job_id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if target == "failed":
        return True
    if current not in FLOW or target not in FLOW:
        return False
    return FLOW.index(target) == FLOW.index(current) + 1


def check_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
