"""
Error taxonomy for the transcode-and-publish pipeline.

ProbeError, EncodeError and PublishError abort a job and are reported to the
caller. CleanupWarning is only ever logged.
"""


class PipelineError(Exception):
    """Base for failures that end a job."""

    stage = "pipeline"

    def __init__(self, message: str, *, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ProbeError(PipelineError):
    stage = "probe"


class EncodeError(PipelineError):
    stage = "encode"


class PublishError(PipelineError):
    stage = "publish"


class CleanupWarning(UserWarning):
    pass


class InvalidTransition(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move job from {current!r} to {target!r}")
        self.current = current
        self.target = target


class JobConflictError(Exception):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id!r} is already being processed")
        self.job_id = job_id
