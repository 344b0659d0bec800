from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


VALID_THEMES = ("default", "beam", "rose_pine", "gaia", "uncover", "graph_paper")
VALID_SLIDE_DETAILS = ("minimal", "medium", "detailed")
VALID_AUDIENCES = ("general", "academic", "technical", "professional", "executive")

JobStatus = Literal["queued", "processing", "completed", "failed"]
TERMINAL_STATUSES = frozenset({"completed", "failed"})


class SlideSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slide_detail: str = Field(default="medium", alias="slideDetail")
    audience: str = "general"


class SlideRequest(BaseModel):
    theme: str
    settings: SlideSettings = Field(default_factory=SlideSettings)


class SlideResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: JobStatus
    message: str
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")


class JobStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: JobStatus
    message: str
    result_url: str = Field(default="", alias="resultUrl")
    updated_at: int = Field(alias="updatedAt")


class FileReference(BaseModel):
    filename: str
    type: str
    key: str


class TaskPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobID")
    theme: str
    settings: SlideSettings
    files: list[FileReference] = Field(default_factory=list)


class TaskAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    job_id: str = Field(alias="jobID")
