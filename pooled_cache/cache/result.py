"""Result type returned by the cache manager's internal API.

CacheResult keeps "key not found" and "operation failed" apart. The
fail-soft methods on CacheManager collapse both to None.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from pooled_cache.cache.classification import ExceptionClass

T = TypeVar("T")


class ResultStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """
    Outcome of one cache operation.

    Attributes:
        status: OK, NOT_FOUND or FAILED
        value: Operation value when status is OK
        error: Exception that caused a FAILED result
        error_class: Classification applied to that exception, or None when
            no connection was borrowed (e.g. the store was unreachable)
    """

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None
    error_class: Optional[ExceptionClass] = None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "CacheResult[T]":
        return cls(ResultStatus.OK, value=value)

    @classmethod
    def not_found(cls) -> "CacheResult[T]":
        return cls(ResultStatus.NOT_FOUND)

    @classmethod
    def failed(
        cls,
        error: BaseException,
        error_class: Optional[ExceptionClass] = None,
    ) -> "CacheResult[T]":
        return cls(ResultStatus.FAILED, error=error, error_class=error_class)

    @property
    def is_ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def is_failed(self) -> bool:
        return self.status is ResultStatus.FAILED

    def unwrap_or_none(self) -> Optional[T]:
        """Legacy fail-soft view: the value when OK, otherwise None."""
        return self.value if self.is_ok else None
