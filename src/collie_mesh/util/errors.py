from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from ..model.validator import ValidationError


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    MODEL_ERROR = 3
    PLATFORM_ERROR = 4
    RUNTIME_ERROR = 5


class CollieError(Exception):
    """Base error for the collie mesh tool."""


class ConfigError(CollieError):
    """Raised for configuration or argument issues."""


class DocumentParseError(CollieError):
    """Raised when a markdown document has no usable front-matter."""


class CollieModelValidationError(CollieError):
    """
    Raised when a foundation or platform document fails validation.
    Carries the complete list of violations.
    """

    def __init__(self, message: str, errors: Sequence["ValidationError"]) -> None:
        self.message = message
        self.errors = list(errors)
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [self.message]
        for err in self.errors:
            lines.append(f"  - {err}")
        return "\n".join(lines)


class UnknownPlatformKindError(CollieError):
    """Raised when a platform matches none, or more than one, of the provider variants."""


class PlatformNotFoundError(CollieError, LookupError):
    """Raised when a referenced platform is not part of the loaded foundation."""


class ProcessRunnerError(CollieError):
    """Raised when an external command cannot be started."""


class PlatformQueryError(CollieError):
    """
    A single platform query failed. Recorded in QueryStatistics and returned as data
    by the mesh adapters; never raised across the aggregation boundary.
    """

    kind = "query_failed"

    def __init__(
        self,
        message: str,
        *,
        platform_id: Optional[str] = None,
        query: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.platform_id = platform_id
        self.query = query
        if kind:
            self.kind = kind


class QueryCancelledError(PlatformQueryError):
    """Raised when the run was cancelled or its deadline passed mid-query."""

    kind = "cancelled"


class UnsupportedQueryError(PlatformQueryError):
    """Raised when a provider has no way to answer a query."""

    kind = "unsupported"


class CostSchemaError(PlatformQueryError):
    """Raised when provider cost rows do not match the expected column layout."""


class ExportError(CollieError):
    """Raised when exporting artifacts fails."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, (DocumentParseError, CollieModelValidationError, PlatformNotFoundError)):
        return int(ExitCode.MODEL_ERROR)
    if isinstance(exc, (UnknownPlatformKindError, PlatformQueryError, ProcessRunnerError)):
        return int(ExitCode.PLATFORM_ERROR)
    if isinstance(exc, (ExportError, CollieError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1
