"""
Negative log partial likelihood of the Cox model and its gradient.

Breslow handling of ties:

    nll(beta) = sum_t [ d_t log( sum_{j in R(t)} w_j exp(eta_j) )
                        - sum_{i: event at t} w_i eta_i ]

with eta = X @ beta and d_t the weighted event count at t. The gradient
is -X^T r where r are the score (martingale) residuals

    r_i = w_i delta_i - w_i exp(eta_i) sum_{t: i in R(t)} d_t / S0(t)

so one pass over the risk sets yields both the loss and the gradient.

Numerical stability: S0(t) is only ever formed as log S0(t), a log-sum-exp
over the risk set (RiskSet.log_risk_sums), and the per-row sums of
d_t / S0(t) are accumulated in log space as well. Each term
eta_i - log S0(t) is then at most -log w_i, so a row whose risk is far
above or below the rest of the data never drives a denominator to zero
or to overflow.

All functions are pure functions of (risk set, beta) and may be
evaluated concurrently against the same RiskSet.

References:
    Cox, D. R. (1972). Regression models and life-tables. JRSS-B, 34(2).
    Breslow, N. (1974). Covariance analysis of censored survival data.
        Biometrics, 30(1), 89-99.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pycoxnet.survival._riskset import RiskSet


def linear_predictor(risk: RiskSet, beta: NDArray) -> NDArray:
    """eta = X @ beta."""
    return risk.X @ np.asarray(beta, dtype=np.float64)


def neg_log_lik(risk: RiskSet, beta: NDArray) -> float:
    """Negative log partial likelihood at beta (Breslow ties)."""
    eta = linear_predictor(risk, beta)
    return _nll(risk, eta, log_risk_totals(risk, eta))


def residuals(risk: RiskSet, beta: NDArray) -> NDArray:
    """Score residuals r (n,), observed minus expected events per row."""
    eta = linear_predictor(risk, beta)
    return _score_residuals(risk, eta, log_risk_totals(risk, eta))


def gradient(
    risk: RiskSet,
    beta: NDArray,
    residual: NDArray | None = None,
) -> NDArray:
    """Gradient of neg_log_lik with respect to beta.

    Args:
        risk: Risk sets of the data.
        beta: (p,) coefficients.
        residual: Score residuals at beta, if already computed.

    Returns:
        (p,) gradient, i.e. minus the Cox score.
    """
    if residual is None:
        residual = residuals(risk, beta)
    return -(risk.X.T @ residual)


def loss_and_gradient(risk: RiskSet, beta: NDArray) -> tuple[float, NDArray]:
    """neg_log_lik and its gradient from a single risk-set pass."""
    eta = linear_predictor(risk, beta)
    log_s0 = log_risk_totals(risk, eta)
    loss = _nll(risk, eta, log_s0)
    residual = _score_residuals(risk, eta, log_s0)
    return loss, -(risk.X.T @ residual)


def saturated_neg_log_lik(risk: RiskSet) -> float:
    """Negative log partial likelihood of the saturated model.

    Under Breslow ties the saturated model puts all risk on the d_t events
    at each time, so its log partial likelihood is -sum_t d_t log d_t.
    """
    d = risk.n_events
    return float(np.sum(d * np.log(d)))


def deviance(risk: RiskSet, beta: NDArray) -> float:
    """Partial likelihood deviance 2 * (nll(beta) - nll_saturated)."""
    return 2.0 * (neg_log_lik(risk, beta) - saturated_neg_log_lik(risk))


def log_risk_totals(risk: RiskSet, eta: NDArray) -> NDArray:
    """log S0(t) = log sum_{j in R(t)} w_j exp(eta_j) at every event time."""
    return risk.log_risk_sums(risk.log_weights + eta)


def _nll(risk: RiskSet, eta: NDArray, log_s0: NDArray) -> float:
    rows = risk.event_rows
    event_term = float(np.dot(risk.weights[rows], eta[rows]))
    risk_term = float(np.dot(risk.n_events, log_s0))
    return risk_term - event_term


def _score_residuals(risk: RiskSet, eta: NDArray, log_s0: NDArray) -> NDArray:
    log_hazard = np.log(risk.n_events) - log_s0
    log_cumhaz = risk.log_accumulate_over_rows(log_hazard)
    expected = np.exp(risk.log_weights + eta + log_cumhaz)
    return risk.weights * risk.event - expected
