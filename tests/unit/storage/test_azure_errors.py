import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from azure.storage.blob import StorageErrorCode

from datastore.errors import NotFoundError
from storage.backends.azure_errors import (
    is_blob_not_found,
    is_container_already_exists,
    translate_error,
)
from tests.helpers.fake_azure import make_azure_error


def test_blob_not_found_is_recognised():
    error = make_azure_error(ResourceNotFoundError, StorageErrorCode.blob_not_found)
    assert is_blob_not_found(error)


def test_blob_not_found_code_as_plain_string():
    error = make_azure_error(ResourceNotFoundError, "BlobNotFound")
    assert is_blob_not_found(error)


def test_bare_404_without_code_counts_as_missing_blob():
    assert is_blob_not_found(ResourceNotFoundError(message="404"))


def test_container_not_found_is_not_a_missing_blob():
    error = make_azure_error(ResourceNotFoundError, StorageErrorCode.container_not_found)
    assert not is_blob_not_found(error)
    assert translate_error(error, "/k") is error


@pytest.mark.parametrize(
    "error",
    [
        make_azure_error(HttpResponseError, StorageErrorCode.server_busy),
        ClientAuthenticationError(message="bad key"),
        ServiceRequestError(message="connection reset"),
        ValueError("not an azure error"),
    ],
)
def test_other_errors_are_returned_unchanged(error):
    assert not is_blob_not_found(error)
    assert translate_error(error, "/k") is error


def test_translate_not_found_carries_key():
    error = make_azure_error(ResourceNotFoundError, StorageErrorCode.blob_not_found)

    translated = translate_error(error, "/some/key")

    assert isinstance(translated, NotFoundError)
    assert translated.key == "/some/key"


def test_container_already_exists():
    exists = make_azure_error(ResourceExistsError, StorageErrorCode.container_already_exists)
    being_deleted = make_azure_error(ResourceExistsError, StorageErrorCode.container_being_deleted)

    assert is_container_already_exists(exists)
    assert not is_container_already_exists(being_deleted)
    assert not is_container_already_exists(
        make_azure_error(ResourceNotFoundError, StorageErrorCode.container_already_exists)
    )
