"""
Tests for the negative log partial likelihood and its gradient.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.optimize import approx_fprime
from scipy.special import logsumexp

from pycoxnet.survival._loss import (
    deviance,
    gradient,
    loss_and_gradient,
    neg_log_lik,
    residuals,
    saturated_neg_log_lik,
)
from pycoxnet.survival._riskset import build_risk_set


def _risk(y, X, weights=None):
    if y.shape[1] == 3:
        return build_risk_set(y[:, 1], y[:, 2], X, start=y[:, 0], weights=weights)
    return build_risk_set(y[:, 0], y[:, 1], X, weights=weights)


def _explicit_loss_and_gradient(start, stop, event, X, beta):
    """Breslow loss and gradient summed event by event over explicit risk sets."""
    eta = X @ beta
    loss = 0.0
    grad = np.zeros(X.shape[1])
    for i in np.flatnonzero(event == 1):
        at_risk = (stop >= stop[i]) & (start < stop[i])
        log_s0 = logsumexp(eta[at_risk])
        loss += log_s0 - eta[i]
        share = np.exp(eta[at_risk] - log_s0)
        grad -= X[i] - share @ X[at_risk]
    return loss, grad


class TestNegLogLik:

    def test_hand_computed(self):
        # eta = [0.5, 0, 1]; t=1: all at risk; t=2: rows 1 and 2
        risk = build_risk_set([1.0, 2.0, 3.0], [1, 1, 0], np.array([[1.0], [0.0], [2.0]]))
        expected = (
            np.log(np.exp(0.5) + 1.0 + np.exp(1.0)) - 0.5
            + np.log(1.0 + np.exp(1.0))
        )
        assert neg_log_lik(risk, np.array([0.5])) == pytest.approx(expected)

    def test_null_model_with_ties(self):
        # beta = 0: sum_t d_t log(n_at_risk)
        risk = build_risk_set([1.0, 2.0, 2.0, 3.0], [1, 1, 1, 0], np.zeros((4, 1)))
        assert neg_log_lik(risk, np.zeros(1)) == pytest.approx(np.log(4) + 2 * np.log(3))

    def test_scale_invariance(self, cox_data):
        y, X, beta = cox_data
        c = 3.7
        a = neg_log_lik(_risk(y, X), beta)
        b = neg_log_lik(_risk(y, X * c), beta / c)
        assert a == pytest.approx(b, rel=1e-10)

    def test_large_linear_predictor_shift(self, cox_data):
        # a constant added to eta cancels; exp(1000) would overflow unshifted
        y, X, beta = cox_data
        shifted = X.copy()
        shifted[:, 0] += 1000.0 / beta[0]
        base_loss, base_grad = loss_and_gradient(_risk(y, X), beta)
        loss, grad = loss_and_gradient(_risk(y, shifted), beta)
        assert np.isfinite(loss)
        assert loss == pytest.approx(base_loss, rel=1e-8)
        assert_allclose(grad, base_grad, rtol=1e-6, atol=1e-6)

    def test_integer_weights_match_replicated_rows(self, cox_data):
        y, X, beta = cox_data
        w = np.ones(len(y))
        w[:10] = 2.0
        weighted = neg_log_lik(_risk(y, X, weights=w), beta)
        replicated = neg_log_lik(
            _risk(np.vstack([y, y[:10]]), np.vstack([X, X[:10]])), beta
        )
        assert weighted == pytest.approx(replicated, rel=1e-10)

    def test_counting_process_matches_right_censored(self, counting_process_data):
        y_right, y_cp, X_right, X_cp = counting_process_data
        beta = np.array([0.3, -0.2, 0.1, 0.0, 0.4])
        right_loss, right_grad = loss_and_gradient(_risk(y_right, X_right), beta)
        cp_loss, cp_grad = loss_and_gradient(_risk(y_cp, X_cp), beta)
        assert cp_loss == pytest.approx(right_loss, rel=1e-10)
        assert_allclose(cp_grad, right_grad, rtol=1e-8, atol=1e-10)


class TestWideRiskSpread:
    """Linear predictors spread over hundreds of units across rows."""

    def test_dominant_early_row(self):
        # eta = [1000, 0, 5, 10]; row 0 leaves after t=1
        stop = np.array([1.0, 2.0, 3.0, 4.0])
        event = np.array([1.0, 1.0, 1.0, 0.0])
        X = np.array([[100.0], [0.0], [0.5], [1.0]])
        beta = np.array([10.0])
        risk = build_risk_set(stop, event, X)

        loss, grad = loss_and_gradient(risk, beta)
        ref_loss, ref_grad = _explicit_loss_and_gradient(
            np.full(4, -np.inf), stop, event, X, beta
        )
        assert loss == pytest.approx(ref_loss, rel=1e-12)
        assert loss == pytest.approx(15.0135, abs=1e-3)
        assert_allclose(grad, ref_grad, rtol=1e-10)

    def test_dominant_late_entry(self):
        # eta = [0, 5, 40]; row 2 enters at 5, after the first two events
        start = np.array([0.0, 0.0, 5.0])
        stop = np.array([1.0, 2.0, 6.0])
        event = np.ones(3)
        X = np.array([[0.0], [0.5], [4.0]])
        beta = np.array([10.0])
        risk = build_risk_set(stop, event, X, start=start)

        loss, grad = loss_and_gradient(risk, beta)
        ref_loss, ref_grad = _explicit_loss_and_gradient(start, stop, event, X, beta)
        assert loss == pytest.approx(np.log1p(np.exp(5.0)), rel=1e-12)
        assert loss == pytest.approx(ref_loss, rel=1e-12)
        assert_allclose(grad, ref_grad, rtol=1e-10)
        assert np.all(np.isfinite(residuals(risk, beta)))

    def test_staggered_entry_matches_explicit_risk_sets(self, rng):
        n = 80
        start = rng.uniform(0.0, 3.0, n)
        stop = start + rng.exponential(1.0, n)
        event = (rng.uniform(size=n) < 0.7).astype(np.float64)
        X = 6.0 * rng.standard_normal((n, 2))
        beta = np.array([4.0, -3.0])
        risk = build_risk_set(stop, event, X, start=start)

        loss, grad = loss_and_gradient(risk, beta)
        ref_loss, ref_grad = _explicit_loss_and_gradient(start, stop, event, X, beta)
        assert loss == pytest.approx(ref_loss, rel=1e-10)
        assert_allclose(grad, ref_grad, rtol=1e-8, atol=1e-8)

    def test_right_censored_matches_explicit_risk_sets(self, cox_data):
        y, X, beta = cox_data
        scaled = 8.0 * beta
        loss, grad = loss_and_gradient(_risk(y, X), scaled)
        ref_loss, ref_grad = _explicit_loss_and_gradient(
            np.full(len(y), -np.inf), y[:, 0], y[:, 1], X, scaled
        )
        assert loss == pytest.approx(ref_loss, rel=1e-10)
        assert_allclose(grad, ref_grad, rtol=1e-8, atol=1e-8)


class TestGradient:

    def test_matches_finite_differences(self, cox_data):
        y, X, _ = cox_data
        risk = _risk(y, X)
        beta = np.array([0.2, -0.1, 0.3, 0.0, -0.4])
        numeric = approx_fprime(beta, lambda b: neg_log_lik(risk, b), 1e-6)
        assert_allclose(gradient(risk, beta), numeric, rtol=1e-4, atol=1e-4)

    def test_counting_process_finite_differences(self, counting_process_data):
        _, y_cp, _, X_cp = counting_process_data
        risk = _risk(y_cp, X_cp)
        beta = np.array([-0.3, 0.2, 0.0, 0.1, 0.5])
        numeric = approx_fprime(beta, lambda b: neg_log_lik(risk, b), 1e-6)
        assert_allclose(gradient(risk, beta), numeric, rtol=1e-4, atol=1e-4)

    def test_is_minus_X_transpose_residuals(self, cox_data):
        y, X, beta = cox_data
        risk = _risk(y, X)
        assert_allclose(gradient(risk, beta), -X.T @ residuals(risk, beta))
        _, grad = loss_and_gradient(risk, beta)
        assert_allclose(grad, gradient(risk, beta))

    def test_residuals_sum_to_zero(self, cox_data):
        # observed minus expected events balances over all rows
        y, X, beta = cox_data
        assert residuals(_risk(y, X), beta).sum() == pytest.approx(0.0, abs=1e-8)


class TestDeviance:

    def test_saturated_without_ties_is_zero(self):
        risk = build_risk_set([1.0, 2.0, 3.0], [1, 1, 0], np.zeros((3, 1)))
        assert saturated_neg_log_lik(risk) == pytest.approx(0.0)

    def test_deviance_non_negative(self, cox_data):
        y, X, beta = cox_data
        assert deviance(_risk(y, X), beta) > 0
