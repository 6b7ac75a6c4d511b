"""
Exception hierarchy for the tenant ingestion pipeline.

Every failure the pipeline can surface derives from PipelineError so the
batch trigger can catch once and report a single message.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class MalformedInputError(PipelineError):
    """The batch input is not well-formed structured data."""


class AuthError(PipelineError):
    """A bearer token could not be obtained."""


class RemoteServiceError(PipelineError):
    """A remote service answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None, response_body: str | None = None):
        self.status_code = status_code
        self.response_body = response_body
        if status_code is not None:
            message = f"{message} (HTTP {status_code}): {response_body or ''}".rstrip(": ")
        super().__init__(message)


class ProvisioningError(RemoteServiceError):
    """Index or search application creation failed."""


class ResourceExistsError(ProvisioningError):
    """The indexing service already has a resource with the requested id."""


class StagingError(PipelineError, OSError):
    """The local staging file could not be written or removed."""


class UploadError(RemoteServiceError):
    """The staged file could not be stored in the object store."""


class ImportTriggerError(RemoteServiceError):
    """The indexing service rejected or failed an import job."""
