"""Error taxonomy shared by the issuer, the redemption engine and the stores.

Validation errors are the caller's fault and are never retried. Store errors
are infrastructure failures: reads may be retried, a download increment may not.
Redemption denials are not exceptions at all, see ``api.download.dto``.
"""


class LinkValidationError(ValueError):
    """Bad input to issuance (file name, size, link policy)."""


class FileTooLargeError(LinkValidationError):
    """Uploaded file exceeds the link's or the server's size limit."""


class StoreError(RuntimeError):
    """A metadata or blob store call failed."""

    retryable = True


class StoreTimeoutError(StoreError):
    """A store call did not finish within STORE_TIMEOUT_SECONDS."""


class DuplicateTokenError(StoreError):
    """A metadata record with the same token already exists."""

    retryable = False


class BlobNotFoundError(StoreError):
    """The blob a record points at is missing."""

    retryable = False
