"""Request schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from devinsight.utils.exceptions import ValidationError
from devinsight.utils.validators import normalise_github_url


class SourceFileRequest(BaseModel):
    path: str = Field(..., min_length=1, max_length=1000)
    language: str | None = None
    content: str = ""


class AnalyzeCodeRequest(BaseModel):
    files: list[SourceFileRequest] = Field(default_factory=list)


class AnalyzeRequest(AnalyzeCodeRequest):
    repoName: str | None = Field(default=None, max_length=255)
    repoUrl: str | None = None
    readme: str | None = None

    @field_validator("repoUrl", mode="before")
    @classmethod
    def normalise_repo_url(cls, v: str | None) -> str | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        try:
            return normalise_github_url(v)
        except ValidationError as exc:
            # pydantic turns ValueError into a 422
            raise ValueError(str(exc)) from exc


class ReadinessRequest(BaseModel):
    text: str = Field(..., min_length=1)


class ReadmeRequest(BaseModel):
    readme: str = ""
