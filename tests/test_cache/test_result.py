"""Unit tests for CacheResult."""

from pooled_cache.cache.classification import ExceptionClass
from pooled_cache.cache.result import CacheResult, ResultStatus


class TestCacheResult:
    def test_ok(self):
        result = CacheResult.ok([1, 2])

        assert result.status is ResultStatus.OK
        assert result.is_ok
        assert result.unwrap_or_none() == [1, 2]

    def test_not_found(self):
        result = CacheResult.not_found()

        assert not result.is_ok
        assert not result.is_failed
        assert result.unwrap_or_none() is None

    def test_failed(self):
        error = OSError("reset")
        result = CacheResult.failed(error, ExceptionClass.TRANSPORT_FATAL)

        assert result.is_failed
        assert result.error is error
        assert result.error_class is ExceptionClass.TRANSPORT_FATAL
        assert result.unwrap_or_none() is None

    def test_ok_with_falsy_value(self):
        """An empty list is a real value, distinct from a failure."""
        assert CacheResult.ok([]).unwrap_or_none() == []
