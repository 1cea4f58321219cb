"""Tests for Dropbox error summary classification and payload parsing."""

import json

import pytest
from pydantic import ValidationError

from turnstore.adapters.storage import classify_error_summary
from turnstore.core.errors import ErrorKind
from turnstore.schemas.dropbox import DropboxApiArg, DropboxErrorResponse, DropboxFileMetadata


@pytest.mark.parametrize(
    ("summary", "expected"),
    [
        ("too_many_requests/..", ErrorKind.RATE_LIMITED),
        ("too_many_requests/too_many_write_operations/", ErrorKind.RATE_LIMITED),
        ("path/not_found/..", ErrorKind.NOT_FOUND),
        ("path/not_found/", ErrorKind.NOT_FOUND),
        ("path_lookup/not_found/...", ErrorKind.NOT_FOUND),
        ("path/conflict/file/..", ErrorKind.CONFLICT),
        ("path/conflict/file", ErrorKind.CONFLICT),
    ],
)
def test_known_prefixes(summary: str, expected: ErrorKind) -> None:
    assert classify_error_summary(summary) is expected


@pytest.mark.parametrize(
    "summary",
    [
        "",
        "path/conflict/folder/..",
        "path/malformed_path/.",
        "insufficient_space/...",
        "too_many_requests",
        "not_found/path/",
        "PATH/NOT_FOUND/",
    ],
)
def test_unknown_summaries_fall_back_to_backend_error(summary: str) -> None:
    assert classify_error_summary(summary) is ErrorKind.BACKEND_ERROR


def test_longest_prefix_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    from turnstore.adapters.storage import dropbox_client

    monkeypatch.setitem(dropbox_client.ERROR_SUMMARY_PREFIXES, "path/", ErrorKind.BACKEND_ERROR)

    assert classify_error_summary("path/not_found/..") is ErrorKind.NOT_FOUND
    assert classify_error_summary("path/other/..") is ErrorKind.BACKEND_ERROR


def test_error_response_reads_retry_after() -> None:
    body = (
        '{"error_summary": "too_many_requests/..", '
        '"error": {"reason": {".tag": "too_many_requests"}, "retry_after": 5}}'
    )
    error = DropboxErrorResponse.model_validate_json(body)

    assert error.error_summary == "too_many_requests/.."
    assert error.retry_after == 5


@pytest.mark.parametrize("retry_after", ['"5"', "5.0"])
def test_error_response_accepts_numeric_retry_after(retry_after: str) -> None:
    body = f'{{"error_summary": "too_many_requests/", "error": {{"retry_after": {retry_after}}}}}'

    assert DropboxErrorResponse.model_validate_json(body).retry_after == 5


@pytest.mark.parametrize("retry_after", ['"soon"', "null", "0", "-3", "true", "[]"])
def test_error_response_unparsable_retry_after_is_absent(retry_after: str) -> None:
    body = f'{{"error_summary": "too_many_requests/", "error": {{"retry_after": {retry_after}}}}}'

    assert DropboxErrorResponse.model_validate_json(body).retry_after is None


def test_error_response_without_error_details() -> None:
    error = DropboxErrorResponse.model_validate_json('{"error_summary": "other/..", "error": "text"}')

    assert error.error is None
    assert error.retry_after is None


@pytest.mark.parametrize("body", ["", "not json", "[]", '"string"', '{"error_summary": 5}'])
def test_error_response_rejects_malformed_bodies(body: str) -> None:
    with pytest.raises(ValidationError):
        DropboxErrorResponse.model_validate_json(body)


def test_file_metadata_parses_server_modified_as_utc() -> None:
    metadata = DropboxFileMetadata.model_validate_json(
        '{"name": "game", "server_modified": "2015-05-12T15:50:38Z", "size": 7212}'
    )

    assert metadata.server_modified.year == 2015
    assert metadata.server_modified.utcoffset().total_seconds() == 0


def test_file_metadata_without_timezone_assumes_utc() -> None:
    metadata = DropboxFileMetadata.model_validate_json('{"server_modified": "2015-05-12T15:50:38"}')

    assert metadata.server_modified.tzinfo is not None


def test_api_arg_omits_mode_when_unset() -> None:
    assert DropboxApiArg(path="/MultiplayerGames/g1").to_json() == '{"path": "/MultiplayerGames/g1"}'


def test_api_arg_tags_mode() -> None:
    arg = DropboxApiArg(path="/MultiplayerGames/g1", mode="overwrite")

    assert json.loads(arg.to_json()) == {
        "path": "/MultiplayerGames/g1",
        "mode": {".tag": "overwrite"},
    }


def test_api_arg_header_is_ascii() -> None:
    header = DropboxApiArg(path="/MultiplayerGames/partie-é").to_json()

    assert header.isascii()
    assert json.loads(header)["path"] == "/MultiplayerGames/partie-é"


def test_api_arg_rejects_unknown_mode() -> None:
    with pytest.raises(ValidationError):
        DropboxApiArg(path="/MultiplayerGames/g1", mode="update")
