"""
Tests for the pycoxnet exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via PyCoxnetError)
    - Diagnostic attributes on DataError, ConfigError,
      DegenerateStepError, ConvergenceError
    - Default attribute values (None for optional attributes)
"""

import warnings

import pytest

from pycoxnet.core.exceptions import (
    ConfigError,
    ConvergenceError,
    ConvergenceWarning,
    DataError,
    DegenerateStepError,
    DimensionError,
    NumericalError,
    PyCoxnetError,
    ValidationError,
)


# ═══════════════════════════════════════════════════════════════════════
# Inheritance hierarchy
# ═══════════════════════════════════════════════════════════════════════


class TestInheritance:
    """Every exception is catchable via PyCoxnetError."""

    @pytest.mark.parametrize("cls", [
        ValidationError, DataError, DimensionError, ConfigError,
        NumericalError, DegenerateStepError,
    ])
    def test_catchable_as_base(self, cls):
        with pytest.raises(PyCoxnetError):
            raise cls("failure")

    def test_convergence_error_is_base(self):
        with pytest.raises(PyCoxnetError):
            raise ConvergenceError("did not converge", iterations=10)

    def test_dimension_error_is_data_error(self):
        with pytest.raises(DataError):
            raise DimensionError("wrong shape")

    def test_data_and_config_are_validation_errors(self):
        assert issubclass(DataError, ValidationError)
        assert issubclass(ConfigError, ValidationError)

    def test_degenerate_step_is_numerical(self):
        assert issubclass(DegenerateStepError, NumericalError)

    def test_convergence_error_is_not_numerical_error(self):
        err = ConvergenceError("did not converge", iterations=100)
        assert not isinstance(err, NumericalError)

    def test_convergence_warning_is_runtime_warning(self):
        assert issubclass(ConvergenceWarning, RuntimeWarning)
        with pytest.warns(ConvergenceWarning):
            warnings.warn("slow", ConvergenceWarning)


# ═══════════════════════════════════════════════════════════════════════
# Diagnostic attributes
# ═══════════════════════════════════════════════════════════════════════


class TestDataError:

    def test_rows(self):
        err = DataError("stop <= start", rows=[2, 5])
        assert str(err) == "stop <= start"
        assert err.rows == [2, 5]

    def test_rows_default_none(self):
        assert DataError("no events").rows is None


class TestConfigError:

    def test_attributes(self):
        err = ConfigError("alpha out of range", parameter="alpha", value=1.5)
        assert err.parameter == "alpha"
        assert err.value == 1.5

    def test_defaults_are_none(self):
        err = ConfigError("bad")
        assert err.parameter is None
        assert err.value is None


class TestDegenerateStepError:

    def test_attributes(self):
        err = DegenerateStepError("zero curvature", s_dot_s=1.0, s_dot_g=0.0)
        assert err.s_dot_s == 1.0
        assert err.s_dot_g == 0.0


class TestConvergenceError:
    """ConvergenceError carries iteration diagnostics."""

    def test_all_attributes(self):
        err = ConvergenceError(
            "proximal gradient did not converge",
            iterations=500,
            final_change=1e-4,
            reason="max_iterations",
            threshold=1e-6,
            lam=0.05,
        )
        assert err.iterations == 500
        assert err.final_change == 1e-4
        assert err.reason == "max_iterations"
        assert err.threshold == 1e-6
        assert err.lam == 0.05

    def test_defaults_are_none(self):
        err = ConvergenceError("failed", iterations=3)
        assert err.final_change is None
        assert err.reason is None
        assert err.threshold is None
        assert err.lam is None
