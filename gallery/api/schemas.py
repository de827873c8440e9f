from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    detail: str


class WorkerMetrics(BaseModel):
    stage: str
    started: bool
    stopped: bool
    ticks_total: int
    batches_total: int
    idle_ticks_total: int
    errors_total: int


class HealthResponse(BaseModel):
    status: str
    role: str
    mode: str


class ReadyResponse(BaseModel):
    status: str
    role: str
    mode: str
    worker_loop_enabled: bool
    worker_loop_ready: bool
    worker_metrics: dict[str, WorkerMetrics]


class UploadImageResponse(BaseModel):
    image_id: str
    bucket: str
    size: int
    content_type: str
    message_id: str


class PublishMessageRequest(BaseModel):
    body: str | dict[str, object]
    attributes: dict[str, str] = Field(default_factory=dict)


class PublishMessageResponse(BaseModel):
    message_id: str
    queue: str


class ImageRecordResponse(BaseModel):
    id: str
    upload_time: str | None = None
    size: int | None = None
    content_type: str | None = None
    caption: str | None = None
    review_date: str | None = None
    photographer_name: str | None = None
    photographer_email: str | None = None
    description: str | None = None
    location: str | None = None
    tags: list[str] | None = None
    photographer: str | None = None
    status: str
    reason: str | None = None
