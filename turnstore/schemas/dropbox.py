"""Pydantic schemas for Dropbox API payloads."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DropboxErrorDetails(BaseModel):
    """Tagged error union returned under the ``error`` key.

    Only ``retry_after`` is interpreted; every other member is kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    retry_after: int | None = Field(
        default=None,
        description="Seconds to wait before the next call (too_many_requests only).",
    )

    @field_validator("retry_after", mode="before")
    @classmethod
    def _parse_retry_after(cls, value: Any) -> int | None:
        # Anything that is not a positive whole number counts as absent
        if isinstance(value, bool):
            return None
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return None
        return parsed if parsed > 0 else None


class DropboxErrorResponse(BaseModel):
    """Error body of a non-2xx Dropbox response."""

    model_config = ConfigDict(extra="ignore")

    error_summary: str = Field(
        default="",
        description="Slash-namespaced error code, e.g. 'path/not_found/..'.",
    )
    error: DropboxErrorDetails | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _drop_untyped_error(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def retry_after(self) -> int | None:
        return self.error.retry_after if self.error else None


class DropboxFileMetadata(BaseModel):
    """Subset of the metadata returned by ``files/get_metadata``."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    path_display: str | None = None
    server_modified: datetime = Field(
        ..., description="Last time the file was modified on the server (UTC)."
    )

    @field_validator("server_modified")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DropboxApiArg(BaseModel):
    """Target of a files call, sent in the Dropbox-API-Arg header or as the JSON body."""

    path: str = Field(..., description="Absolute path in the account, e.g. '/MultiplayerGames/g1'.")
    mode: Literal["add", "overwrite"] | None = Field(
        default=None,
        description="Upload write mode; omitted means 'add', which fails on an existing file.",
    )

    def to_json(self) -> str:
        """Serialize to ASCII-only JSON, as HTTP header values require."""
        payload: dict[str, Any] = {"path": self.path}
        if self.mode is not None:
            payload["mode"] = {".tag": self.mode}
        return json.dumps(payload)
