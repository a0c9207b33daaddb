"""
Karush-Kuhn-Tucker checks for the elastic-net penalized Cox objective.

With g the gradient of the averaged loss and pf the penalty factors,
beta is stationary when, for every coordinate j,

    beta_j != 0:  g_j + lambda alpha pf_j sign(beta_j) + lambda (1 - alpha) pf_j beta_j = 0
    beta_j == 0:  |g_j| <= lambda alpha pf_j

At beta = 0 the second condition holds for every coordinate exactly when
lambda >= max_j |g_j(0)| / (alpha pf_j), which gives lambda_max.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pycoxnet.survival._loss import gradient
from pycoxnet.survival._riskset import RiskSet

# glmnet's floor on alpha when sizing the path for ridge-like penalties
ALPHA_FLOOR = 1e-3


@dataclass(frozen=True)
class KKTReport:
    """Per-coordinate stationarity audit.

    Attributes:
        passed: (p,) True where the condition holds within tol of the
            coordinate's l1 threshold.
        violation: (p,) amount by which each condition is violated
            (0 where it holds exactly).
        tol: Relative tolerance used.
    """
    passed: NDArray
    violation: NDArray
    tol: float

    @property
    def all_passed(self) -> bool:
        return bool(np.all(self.passed))

    @property
    def n_violations(self) -> int:
        return int(np.sum(~self.passed))

    @property
    def violating(self) -> NDArray:
        """Indices of coordinates that fail the check."""
        return np.flatnonzero(~self.passed)


def kkt_check(
    grad: NDArray,
    beta: NDArray,
    lam: float,
    alpha: float,
    *,
    tol: float = 1e-4,
    penalty_factor: NDArray | None = None,
) -> KKTReport:
    """Check the KKT conditions coordinate by coordinate.

    A coordinate passes when its violation is at most tol times its l1
    threshold lambda alpha pf_j, so the check does not depend on the
    scale of the loss or of lambda_max. Unpenalized coordinates use
    pf_j = 1 for the threshold, and alpha is floored at ALPHA_FLOOR as
    in lambda_max.

    Args:
        grad: (p,) gradient of the averaged loss at beta.
        beta: (p,) candidate solution.
        lam: Penalty strength.
        alpha: Mixing parameter.
        tol: Tolerance relative to the l1 threshold.
        penalty_factor: (p,) per-coordinate multipliers, default ones.

    Returns:
        KKTReport
    """
    grad = np.asarray(grad, dtype=np.float64)
    beta = np.asarray(beta, dtype=np.float64)
    pf = np.ones_like(beta) if penalty_factor is None else penalty_factor

    active = beta != 0
    l1 = lam * alpha * pf
    l2 = lam * (1.0 - alpha) * pf

    stationarity = np.abs(grad + l1 * np.sign(beta) + l2 * beta)
    subgradient = np.maximum(np.abs(grad) - l1, 0.0)
    violation = np.where(active, stationarity, subgradient)

    scale = lam * max(alpha, ALPHA_FLOOR) * np.where(pf > 0, pf, 1.0)
    allowed = tol * np.maximum(scale, np.finfo(np.float64).eps)

    return KKTReport(passed=violation <= allowed, violation=violation, tol=tol)


def lambda_max(
    risk: RiskSet,
    alpha: float,
    penalty_factor: NDArray | None = None,
) -> float:
    """Smallest lambda at which beta = 0 satisfies the KKT conditions.

    Uses the gradient of the averaged loss at the null model. Unpenalized
    coordinates (pf = 0) are excluded.
    """
    grad0 = null_gradient(risk)
    pf = np.ones(risk.p) if penalty_factor is None else penalty_factor
    penalized = pf > 0
    if not np.any(penalized):
        return 0.0
    scores = np.abs(grad0[penalized]) / pf[penalized]
    return float(np.max(scores) / max(alpha, ALPHA_FLOOR))


def null_gradient(risk: RiskSet) -> NDArray:
    """Gradient of the averaged loss at beta = 0."""
    return gradient(risk, np.zeros(risk.p)) / risk.total_weight
