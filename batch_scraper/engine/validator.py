"""Validate and normalise incoming batch requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any
from urllib.parse import urlsplit

import pydantic
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ..config import JobConfig
from ..errors import ValidationError

MAX_URLS = 50
MAX_LABEL_LENGTH = 255

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*$")


def _check_absolute_url(value: str) -> str:
    if value != value.strip() or any(ch.isspace() for ch in value):
        raise ValueError("Invalid url")
    try:
        parts = urlsplit(value)
    except ValueError as exc:
        raise ValueError("Invalid url") from exc
    if not parts.scheme or not _SCHEME_PATTERN.match(parts.scheme) or not parts.netloc:
        raise ValueError("Invalid url")
    return value


AbsoluteUrl = Annotated[str, AfterValidator(_check_absolute_url)]


class SubmissionBody(BaseModel):
    """Wire shape of a job submission."""

    model_config = ConfigDict(extra="ignore")

    urls: list[AbsoluteUrl] = Field(min_length=1, max_length=MAX_URLS)
    label: str | None = Field(default=None, max_length=MAX_LABEL_LENGTH)
    config: dict[str, Any] | None = None


@dataclass(slots=True)
class BatchRequest:
    """A validated request; ``unique_urls`` is what every later stage sees.

    ``config`` is the caller's mapping as sent and ``options`` the keys read
    from it.
    """

    urls: list[str]
    unique_urls: list[str]
    label: str | None
    config: dict[str, Any]
    options: JobConfig

    @property
    def requested_count(self) -> int:
        return len(self.urls)


def dedupe_urls(urls: list[str]) -> list[str]:
    """Drop repeated URLs, keeping the first occurrence of each."""

    return list(dict.fromkeys(urls))


class RequestValidator:
    """Turn a raw payload into a :class:`BatchRequest` or raise ``ValidationError``."""

    def validate(self, payload: Any) -> BatchRequest:
        if not isinstance(payload, dict):
            raise ValidationError(
                [{"loc": [], "msg": "Expected an object", "type": "model_type"}]
            )
        try:
            body = SubmissionBody.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                [
                    {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
                    for error in exc.errors(include_url=False)
                ]
            ) from exc
        return BatchRequest(
            urls=list(body.urls),
            unique_urls=dedupe_urls(body.urls),
            label=body.label,
            config=dict(body.config or {}),
            options=JobConfig.from_mapping(body.config),
        )


__all__ = [
    "BatchRequest",
    "MAX_LABEL_LENGTH",
    "MAX_URLS",
    "RequestValidator",
    "SubmissionBody",
    "dedupe_urls",
]
