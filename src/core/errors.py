# src/core/errors.py - v1
"""Error taxonomy for file organization runs.

Every pipeline error carries an ErrorKind so the orchestrator can record a
tagged outcome and callers can tell retry-worthy failures from fatal ones:

    config     invalid or missing configuration, never retried
    timeout    a bounded wait expired, the run must be re-triggered
    invariant  the partition is corrupt, manual review required
    oracle     a window or adjudication call failed, operator decides
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorKind(str, Enum):
    CONFIG = "config"
    TIMEOUT = "timeout"
    INVARIANT = "invariant"
    ORACLE = "oracle"


class FileOrganizationError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.INVARIANT
    retryable: bool = False


class InvalidWindowConfig(FileOrganizationError):
    """Window size or overlap out of bounds."""

    kind = ErrorKind.CONFIG


class MissingConfiguration(FileOrganizationError):
    """A collaborator required by the next phase was not provided."""

    kind = ErrorKind.CONFIG


class TranscodeTimeout(FileOrganizationError):
    """A source document did not finish converting in time."""

    kind = ErrorKind.TIMEOUT
    retryable = True

    def __init__(self, source_id: str, filename: str, timeout_s: float) -> None:
        self.source_id = source_id
        self.filename = filename
        self.timeout_s = timeout_s
        super().__init__(
            f"Transcoding timeout after {timeout_s:g}s for source {source_id} ({filename})"
        )


class DuplicatePageAssignment(FileOrganizationError):
    """A page_number was found in more than one final group."""

    kind = ErrorKind.INVARIANT

    def __init__(self, page_number: int, groups: list[str]) -> None:
        self.page_number = page_number
        self.groups = groups
        super().__init__(
            f"Page {page_number} assigned to multiple groups: "
            + ", ".join(repr(g) for g in groups)
        )


class UnknownGroupError(FileOrganizationError):
    """A resolution decision referenced a group that does not exist."""

    kind = ErrorKind.INVARIANT


class OracleContractError(FileOrganizationError):
    """The oracle answered, but the answer breaks the judgment contract."""

    kind = ErrorKind.ORACLE


class OracleCallError(FileOrganizationError):
    """The oracle could not be reached or kept failing."""

    kind = ErrorKind.ORACLE
    retryable = True


class ErrorInfo(BaseModel):
    """Serializable error tag recorded on failed runs and windows."""

    kind: ErrorKind
    message: str
    error_type: str = ""
    retryable: bool = False

    @classmethod
    def from_exception(cls, exc: FileOrganizationError) -> ErrorInfo:
        return cls(
            kind=exc.kind,
            message=str(exc),
            error_type=type(exc).__name__,
            retryable=exc.retryable,
        )
