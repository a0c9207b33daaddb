"""
Tests for the lambda sequence and the warm-started regularization path.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pycoxnet.core.exceptions import ConvergenceError
from pycoxnet.survival._kkt import lambda_max
from pycoxnet.survival._path import (
    design_lambda_max,
    fit_design_path,
    fit_path,
    lambda_sequence,
)
from pycoxnet.survival._riskset import build_risk_set, risk_set_for
from pycoxnet.survival._solver import prox_grad_solve
from pycoxnet.survival.design import SurvivalDesign


@pytest.fixture
def risk(sparse_cox_data):
    y, X, _ = sparse_cox_data
    return build_risk_set(y[:, 0], y[:, 1], X)


class TestLambdaSequence:

    def test_endpoints_and_spacing(self):
        lambdas = lambda_sequence(2.0, nlambdas=50, lammin_fract=1e-3)
        assert len(lambdas) == 50
        assert lambdas[0] == pytest.approx(2.0)
        assert lambdas[-1] == pytest.approx(2e-3)
        ratios = lambdas[1:] / lambdas[:-1]
        assert_allclose(ratios, ratios[0])
        assert np.all(np.diff(lambdas) < 0)

    def test_lamfract_truncates(self):
        lambdas = lambda_sequence(1.0, nlambdas=100, lamfract=0.6)
        assert len(lambdas) == 60
        full = lambda_sequence(1.0, nlambdas=100)
        assert_allclose(lambdas, full[:60])

    def test_lamfract_rounds_up(self):
        assert len(lambda_sequence(1.0, nlambdas=10, lamfract=0.25)) == math.ceil(2.5)

    def test_single_lambda(self):
        assert_allclose(lambda_sequence(0.7, nlambdas=1), [0.7])


class TestFitPath:

    def test_starts_at_zero(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 1.0), nlambdas=20, lammin_fract=0.01)
        path = fit_path(risk, lambdas, 1.0)
        assert path.coefficients.shape == (20, risk.p)
        assert_allclose(path.coefficients[0], 0.0, atol=1e-12)
        assert np.all(path.converged)

    def test_support_grows_as_lambda_decreases(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 1.0), nlambdas=15, lammin_fract=0.05)
        path = fit_path(risk, lambdas, 1.0, tol=1e-9)
        assert len(path) >= 10
        nonzero = np.count_nonzero(np.abs(path.coefficients) > 1e-10, axis=1)
        assert np.all(np.diff(nonzero) >= 0)
        assert nonzero[-1] > nonzero[0]

    def test_warm_start_matches_cold_start(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 0.8), nlambdas=12, lammin_fract=0.02)
        warm = fit_path(risk, lambdas, 0.8, tol=1e-8)
        cold = [prox_grad_solve(risk, lam, 0.8, tol=1e-8) for lam in lambdas]

        cold_objective = np.array([fit.objective for fit in cold])
        assert_allclose(warm.objective, cold_objective, rtol=1e-6, atol=1e-8)
        assert np.all(warm.n_iter <= np.array([fit.n_iter for fit in cold]))

    def test_kkt_audit_recorded(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 1.0), nlambdas=8, lammin_fract=0.05)
        path = fit_path(risk, lambdas, 1.0, tol=1e-10)
        assert path.kkt_violations.shape == (8,)
        assert np.all(path.kkt_violations == 0)

    def test_non_converged_lambdas_flagged(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 1.0), nlambdas=5, lammin_fract=0.01)
        path = fit_path(risk, lambdas, 1.0, max_iter=1)
        assert path.n_failed > 0
        assert len(path.messages) == path.n_failed
        message = path.convergence_message()
        assert message.startswith(f"{path.n_failed} of 5 lambda values failed to converge")

    def test_all_converged_has_no_message(self, risk):
        path = fit_path(risk, [lambda_max(risk, 1.0)], 1.0)
        assert path.convergence_message() is None

    def test_strict_raises(self, risk):
        lambdas = lambda_sequence(lambda_max(risk, 1.0), nlambdas=5, lammin_fract=0.01)
        with pytest.raises(ConvergenceError) as exc_info:
            fit_path(risk, lambdas, 1.0, max_iter=1, strict=True)
        err = exc_info.value
        assert err.iterations == 1
        assert err.reason == "max_iterations"
        assert err.lam in lambdas

    def test_strict_raises_on_overflow(self):
        X = np.array([[1e300], [-1e300], [1e300]])
        risk = build_risk_set([1.0, 2.0, 3.0], [1, 1, 1], X)
        with np.errstate(over="ignore", invalid="ignore"):
            with pytest.raises(ConvergenceError) as exc_info:
                fit_path(risk, [0.0], 1.0, strict=True)
        assert exc_info.value.reason == "non_finite_objective"


class TestDesignPath:

    def test_standardized_coefficients_on_original_scale(self, sparse_cox_data):
        y, X, _ = sparse_cox_data
        design = SurvivalDesign.for_survival(y, X)
        scaled = SurvivalDesign.for_survival(y, X * 10.0)

        lam = 0.2 * design_lambda_max(design, 1.0)
        assert design_lambda_max(scaled, 1.0) == pytest.approx(design_lambda_max(design, 1.0))

        a = fit_design_path(design, [lam], 1.0, tol=1e-10)
        b = fit_design_path(scaled, [lam], 1.0, tol=1e-10)
        assert_allclose(b.coefficients * 10.0, a.coefficients, atol=1e-6)

    def test_unstandardized_matches_raw_path(self, sparse_cox_data):
        y, X, _ = sparse_cox_data
        design = SurvivalDesign.for_survival(y, X)
        risk = risk_set_for(design)
        lam = 0.2 * lambda_max(risk, 1.0)
        a = fit_design_path(design, [lam], 1.0, standardize=False)
        b = fit_path(risk, [lam], 1.0)
        assert_allclose(a.coefficients, b.coefficients)
