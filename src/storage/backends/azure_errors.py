"""
Translation of Azure Storage SDK errors into the datastore error vocabulary.

This is the only module that looks at Azure error codes. Everything that is
not a recognised not-found condition is handed back as is, so callers see
the SDK exception unchanged (auth failures or throttling, for example).
"""

from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import StorageErrorCode

from datastore.errors import NotFoundError


def _error_code(exc: BaseException):
    return getattr(exc, "error_code", None)


def is_blob_not_found(exc: BaseException) -> bool:
    """
    True when the service reported that the blob itself does not exist.

    HEAD requests (get_blob_properties) may come back without an error body;
    a bare 404 with no code is treated as a missing blob. A missing container
    is NOT a missing blob and is left to propagate.
    """
    if not isinstance(exc, ResourceNotFoundError):
        return False
    code = _error_code(exc)
    return code is None or code == StorageErrorCode.blob_not_found


def is_container_already_exists(exc: BaseException) -> bool:
    if not isinstance(exc, ResourceExistsError):
        return False
    code = _error_code(exc)
    return code is None or code == StorageErrorCode.container_already_exists


def translate_error(exc: BaseException, key=None) -> BaseException:
    """Maps blob-not-found to NotFoundError(key); returns any other error as is."""
    if is_blob_not_found(exc):
        return NotFoundError(key)
    return exc
