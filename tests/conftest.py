"""Shared fixtures for upload tests."""

import hashlib
from pathlib import Path
from typing import Callable, Optional

import pytest

from fsimupload.module import Producer, UploadRequest
from fsimupload.transfer.receiver import default_staging_factory


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """Empty destination directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    """Directory holding staging files, on the same volume as uploads."""
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def make_request(upload_dir: Path, staging_dir: Path) -> Callable[..., UploadRequest]:
    """Factory for requests that already sent their opening messages."""

    def factory(name: str = "testfile.dat", rename: Optional[str] = None) -> UploadRequest:
        request = UploadRequest(
            upload_dir,
            name,
            rename=rename,
            create_temp=default_staging_factory(staging_dir),
        )
        assert request.produce_info(Producer()) == (False, False)
        return request

    return factory


def _feed(
    request: UploadRequest,
    data: bytes,
    *,
    length: Optional[int] = None,
    digest: Optional[bytes] = None,
) -> None:
    """Send a complete, well-formed device message sequence."""
    request.handle_info("active", True)
    request.handle_info("length", len(data) if length is None else length)
    request.handle_info("data", [data])
    request.handle_info("sha-384", hashlib.sha384(data).digest() if digest is None else digest)


@pytest.fixture
def feed() -> Callable[..., None]:
    """Return the helper sending a full device message sequence."""
    return _feed


@pytest.fixture
def upload(make_request: Callable[..., UploadRequest]) -> Callable[..., UploadRequest]:
    """Run a full successful upload and return the finished request."""

    def run(data: bytes, name: str = "testfile.dat", rename: Optional[str] = None) -> UploadRequest:
        request = make_request(name, rename)
        _feed(request, data)
        assert request.produce_info(Producer()) == (False, True)
        return request

    return run
