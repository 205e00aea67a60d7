from .pipeline import (
    PushSuccess,
    PushError,
    PushSkip,
    PushReport,
    PushAllRequest,
    PushRequest,
    PushByTagRequest,
    MoveStageRequest,
    PipelineUpdateRequest,
    FormSubmissionRequest,
    PipelineRecordOut,
    AttendeeOut,
    PipelineUpdateResponse,
    PipelineListResponse,
)

__all__ = [
    "PushSuccess", "PushError", "PushSkip", "PushReport",
    "PushAllRequest", "PushRequest", "PushByTagRequest", "MoveStageRequest",
    "PipelineUpdateRequest", "FormSubmissionRequest",
    "PipelineRecordOut", "AttendeeOut", "PipelineUpdateResponse", "PipelineListResponse",
]
