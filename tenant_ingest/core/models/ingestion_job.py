"""
IngestionJob model representing a server-side document import operation.
"""

from pydantic import BaseModel, Field


class IngestionJob(BaseModel):
    """
    A document import accepted by the indexing service.

    Note: an accepted job is not a finished job. ``done`` only becomes True
    once the long-running operation has been polled to completion.

    Attributes:
        name: Long-running operation resource name
        index_id: Data store the documents are imported into
        source_uri: Object-store locator the documents are read from
        done: Whether the operation has finished
        success_count: Documents imported (reported on completion)
        failure_count: Documents rejected (reported on completion)
        error: Operation error message, if it finished unsuccessfully
    """

    name: str | None = None
    index_id: str
    source_uri: str
    done: bool = False
    success_count: int = Field(0, ge=0)
    failure_count: int = Field(0, ge=0)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.done and self.error is None
