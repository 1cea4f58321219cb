"""Dropbox storage client adapter."""

from __future__ import annotations

import logging
from types import TracebackType

import httpx
from pydantic import ValidationError

from turnstore.adapters.rate_limit import AbstractCooldownLimiter, CooldownRateLimiter
from turnstore.adapters.storage.base import AbstractStorageClient, BlobMetadata
from turnstore.core.errors import (
    BackendError,
    BlobConflictError,
    BlobNotFoundError,
    ErrorKind,
    RateLimitedError,
    StorageAppError,
)
from turnstore.core.logging import operation_scope
from turnstore.schemas.dropbox import DropboxApiArg, DropboxErrorResponse, DropboxFileMetadata

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.dropboxapi.com/2"
DEFAULT_CONTENT_BASE_URL = "https://content.dropboxapi.com/2"
DEFAULT_REMOTE_FOLDER = "MultiplayerGames"
DEFAULT_RETRY_AFTER_SECONDS = 300

API_ARG_HEADER = "Dropbox-API-Arg"

# error_summary prefix -> error kind; the longest matching prefix wins
ERROR_SUMMARY_PREFIXES: dict[str, ErrorKind] = {
    "too_many_requests/": ErrorKind.RATE_LIMITED,
    "path/not_found/": ErrorKind.NOT_FOUND,
    "path_lookup/not_found/": ErrorKind.NOT_FOUND,
    "path/conflict/file": ErrorKind.CONFLICT,
}


def classify_error_summary(error_summary: str) -> ErrorKind:
    """Map a Dropbox ``error_summary`` to an error kind.

    Args:
        error_summary: Slash-namespaced code such as ``path/not_found/...``.

    Returns:
        ErrorKind of the most specific matching prefix, or
        ``ErrorKind.BACKEND_ERROR`` when nothing matches.
    """
    matches = [prefix for prefix in ERROR_SUMMARY_PREFIXES if error_summary.startswith(prefix)]
    if not matches:
        return ErrorKind.BACKEND_ERROR
    return ERROR_SUMMARY_PREFIXES[max(matches, key=len)]


class DropboxStorageClient(AbstractStorageClient):
    """Client storing blobs in one folder of a Dropbox account.

    Every operation is a single POST. Before it is sent, the client's own
    cooldown limiter is consulted; while a backend rate limit is in effect
    the call fails with ``RateLimitedError`` without any network I/O.
    """

    def __init__(
        self,
        access_token: str,
        *,
        api_base_url: str = DEFAULT_API_BASE_URL,
        content_base_url: str = DEFAULT_CONTENT_BASE_URL,
        remote_folder: str = DEFAULT_REMOTE_FOLDER,
        timeout_seconds: float = 30.0,
        default_retry_after_seconds: int = DEFAULT_RETRY_AFTER_SECONDS,
        http_client: httpx.Client | None = None,
        rate_limiter: AbstractCooldownLimiter | None = None,
    ) -> None:
        """Initialize the Dropbox client.

        Args:
            access_token: Bearer token sent with every request.
            api_base_url: Base URL of the RPC endpoints.
            content_base_url: Base URL of the upload/download endpoints.
            remote_folder: Folder every blob name is placed under.
            timeout_seconds: Timeout for requests in seconds (owned client only).
            default_retry_after_seconds: Cooldown used when a rate limit
                response carries no usable retry_after.
            http_client: Optional preconfigured client; it is not closed by ``close``.
            rate_limiter: Optional limiter; a fresh CooldownRateLimiter by default.

        Raises:
            ValueError: If access_token is empty or default_retry_after_seconds < 1.
        """
        if not access_token:
            raise ValueError("access_token must be a non-empty string")
        if default_retry_after_seconds < 1:
            raise ValueError("default_retry_after_seconds must be >= 1")

        self.api_base_url = api_base_url.rstrip("/")
        self.content_base_url = content_base_url.rstrip("/")
        self.remote_folder = remote_folder.strip("/")
        self.default_retry_after_seconds = default_retry_after_seconds
        self.rate_limiter = rate_limiter or CooldownRateLimiter()

        self._closed = False
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=timeout_seconds)
        self._auth_headers = {"Authorization": f"Bearer {access_token}"}

    def __enter__(self) -> DropboxStorageClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Stop the cooldown timer and close the owned HTTP client."""
        self._closed = True
        self.rate_limiter.shutdown()
        if self._owns_client:
            self.client.close()

    def remote_path(self, name: str) -> str:
        """Map a logical blob name to its path in the Dropbox account."""
        return f"/{self.remote_folder}/{name}"

    def save(self, name: str, data: bytes, *, overwrite: bool = False) -> None:
        api_arg = DropboxApiArg(
            path=self.remote_path(name),
            mode="overwrite" if overwrite else None,
        )

        self._post(
            "save",
            name,
            f"{self.content_base_url}/files/upload",
            content=data,
            content_type="application/octet-stream",
            api_arg=api_arg,
        )

    def load(self, name: str) -> bytes:
        response = self._post(
            "load",
            name,
            f"{self.content_base_url}/files/download",
            content_type="text/plain",
            api_arg=DropboxApiArg(path=self.remote_path(name)),
        )
        return response.content

    def delete(self, name: str) -> None:
        self._post(
            "delete",
            name,
            f"{self.api_base_url}/files/delete_v2",
            content=self._path_body(name),
            content_type="application/json",
        )

    def get_metadata(self, name: str) -> BlobMetadata:
        response = self._post(
            "get_metadata",
            name,
            f"{self.api_base_url}/files/get_metadata",
            content=self._path_body(name),
            content_type="application/json",
        )
        try:
            metadata = DropboxFileMetadata.model_validate_json(response.content)
        except ValidationError as exc:
            raise BackendError(
                f"Invalid metadata response: {exc.error_count()} validation error(s)",
                status_code=response.status_code,
            ) from exc
        return BlobMetadata(last_modified=metadata.server_modified)

    def _path_body(self, name: str) -> bytes:
        return DropboxApiArg(path=self.remote_path(name)).to_json().encode()

    def _post(
        self,
        operation: str,
        name: str,
        url: str,
        *,
        content_type: str,
        content: bytes = b"",
        api_arg: DropboxApiArg | None = None,
    ) -> httpx.Response:
        """Send one request and return the successful response.

        Raises:
            StorageAppError: The classified failure (never anything else).
        """
        with operation_scope():
            if self._closed or self.client.is_closed:
                logger.warning(
                    "storage.client_closed",
                    extra={"operation": operation, "blob_name": name},
                )
                raise BackendError("Storage client is closed")

            admission = self.rate_limiter.check()
            if not admission.allowed:
                logger.warning(
                    "storage.request_rejected",
                    extra={
                        "operation": operation,
                        "blob_name": name,
                        "remaining_s": admission.remaining_seconds,
                    },
                )
                raise RateLimitedError(admission.remaining_seconds)

            headers = {**self._auth_headers, "Content-Type": content_type}
            if api_arg is not None:
                headers[API_ARG_HEADER] = api_arg.to_json()

            logger.debug(
                "storage.request",
                extra={
                    "operation": operation,
                    "blob_name": name,
                    "url": url,
                    "size_bytes": len(content),
                },
            )

            try:
                request = self.client.build_request("POST", url, content=content, headers=headers)
                response = self.client.send(request, stream=True)
            except httpx.HTTPError as exc:
                logger.warning(
                    "storage.transport_error",
                    extra={
                        "operation": operation,
                        "blob_name": name,
                        "error_type": type(exc).__name__,
                    },
                )
                raise BackendError(f"Transport error: {exc}") from exc

            try:
                self._read_body(operation, name, response)
            finally:
                response.close()

            if response.is_success:
                return response

            raise self._error_from_response(operation, name, response)

    def _read_body(self, operation: str, name: str, response: httpx.Response) -> None:
        try:
            response.read()
        except httpx.HTTPError as exc:
            logger.warning(
                "storage.transport_error",
                extra={
                    "operation": operation,
                    "blob_name": name,
                    "status_code": response.status_code,
                    "error_type": type(exc).__name__,
                },
            )
            raise BackendError(
                f"Transport error while reading response: {exc}",
                status_code=response.status_code,
            ) from exc

    def _error_from_response(
        self, operation: str, name: str, response: httpx.Response
    ) -> StorageAppError:
        """Classify a non-2xx response into one of the storage error kinds."""
        status_text = f"HTTP {response.status_code} {response.reason_phrase}".strip()

        try:
            error = DropboxErrorResponse.model_validate_json(response.content)
        except ValidationError:
            logger.warning(
                "storage.error_body_unparsable",
                extra={
                    "operation": operation,
                    "blob_name": name,
                    "status_code": response.status_code,
                    "body_bytes": len(response.content),
                },
            )
            return BackendError(status_text, status_code=response.status_code)

        if not error.error_summary:
            return BackendError(status_text, status_code=response.status_code)

        kind = classify_error_summary(error.error_summary)
        logger.warning(
            "storage.error_response",
            extra={
                "operation": operation,
                "blob_name": name,
                "status_code": response.status_code,
                "error_summary": error.error_summary,
                "error_kind": kind.value,
            },
        )

        if kind is ErrorKind.RATE_LIMITED:
            seconds = error.retry_after or self.default_retry_after_seconds
            return RateLimitedError(self.rate_limiter.trigger(seconds))
        if kind is ErrorKind.NOT_FOUND:
            return BlobNotFoundError(name)
        if kind is ErrorKind.CONFLICT:
            return BlobConflictError(name)
        return BackendError(error.error_summary, status_code=response.status_code)
