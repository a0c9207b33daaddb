"""
Tests for the Result[P] envelope.
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from pycoxnet.core.result import Result


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


class TestResult:

    def test_fields(self):
        result = Result(
            params=FakeParams(1.5),
            info={'alpha': 1.0},
            timing={'total_seconds': 0.1},
            backend_name='cpu_proxgrad',
        )
        assert result.params.value == 1.5
        assert result.info['alpha'] == 1.0
        assert result.backend_name == 'cpu_proxgrad'
        assert result.warnings == ()

    def test_timing_optional(self):
        result = Result(params=FakeParams(0.0), info={}, timing=None, backend_name='x')
        assert result.timing is None

    def test_frozen(self):
        result = Result(params=FakeParams(0.0), info={}, timing=None, backend_name='x')
        with pytest.raises(FrozenInstanceError):
            result.backend_name = 'y'
