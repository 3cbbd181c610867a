from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import ResourceExistsError, ServiceRequestError
from azure.storage.blob import PublicAccess

from app.providers.storage import QuestionImageStorage, StorageNotConfiguredError


def _storage(container_client) -> QuestionImageStorage:
    storage = QuestionImageStorage(connection_string="", container_name="question-images")
    storage.container_client = container_client
    return storage


def test_unconfigured_storage() -> None:
    storage = QuestionImageStorage(connection_string="")
    assert storage.is_configured is False
    assert storage.ensure_bucket() is False
    with pytest.raises(StorageNotConfiguredError):
        storage.upload_png(b"png", "a.png")


def test_ensure_bucket_creates_public_container() -> None:
    container = MagicMock()
    container.exists.return_value = False

    assert _storage(container).ensure_bucket() is True
    container.create_container.assert_called_once_with(public_access=PublicAccess.BLOB)


def test_ensure_bucket_tolerates_concurrent_creation() -> None:
    container = MagicMock()
    container.exists.return_value = False
    container.create_container.side_effect = ResourceExistsError("exists")

    assert _storage(container).ensure_bucket() is True


def test_ensure_bucket_reports_outage() -> None:
    container = MagicMock()
    container.exists.side_effect = ServiceRequestError("unreachable")

    assert _storage(container).ensure_bucket() is False


def test_upload_png_returns_public_url() -> None:
    container = MagicMock()
    blob = container.get_blob_client.return_value
    blob.url = "https://acct.blob.core.windows.net/question-images/p1.png"

    url = _storage(container).upload_png(b"\x89PNG", "p1.png")

    assert url == blob.url
    container.get_blob_client.assert_called_once_with("p1.png")
    _, kwargs = blob.upload_blob.call_args
    assert kwargs["overwrite"] is True
    assert kwargs["content_settings"].content_type == "image/png"


def test_upload_png_failure_returns_none() -> None:
    container = MagicMock()
    container.get_blob_client.return_value.upload_blob.side_effect = (
        ServiceRequestError("unreachable")
    )

    assert _storage(container).upload_png(b"\x89PNG", "p1.png") is None
