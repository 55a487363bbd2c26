"""Error taxonomy for storefront operations.

Every error carries a human-readable message meant to be shown to the user
as-is (the API returns it as the response ``detail``).
"""


class StorefrontError(Exception):
    """Base class for storefront errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PermissionDeniedError(StorefrontError):
    """Write rejected by the storefront access rules."""

    status_code = 403


class ConfigurationMissingError(StorefrontError):
    """Identity provider or store is not configured."""

    status_code = 503


class TransientStoreError(StorefrontError):
    """The backing store could not be reached."""

    status_code = 503


class MalformedInputError(StorefrontError):
    """A required field is missing or invalid."""

    status_code = 422


class NotFoundError(StorefrontError):
    """The requested record does not exist."""

    status_code = 404


class SheetFetchError(StorefrontError):
    """The offers spreadsheet could not be downloaded."""

    status_code = 502
