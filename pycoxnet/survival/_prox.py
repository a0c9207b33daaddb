"""
Elastic-net proximal operator and Barzilai-Borwein step sizes.

Penalty (per coordinate j, penalty factor pf_j):

    P(beta) = lambda * sum_j pf_j * (alpha |beta_j| + (1 - alpha) beta_j^2 / 2)

Its proximal map with step size s is a soft-threshold followed by a
ridge shrink:

    u = beta - s * grad
    beta_new = S(u, s lambda alpha pf) / (1 + s lambda (1 - alpha) pf)

Coordinates with pf_j = 0 are unpenalized and pass through unchanged.

References:
    Barzilai, J., & Borwein, J. M. (1988). Two-point step size gradient
        methods. IMA Journal of Numerical Analysis, 8(1), 141-148.
    Parikh, N., & Boyd, S. (2014). Proximal algorithms. Foundations and
        Trends in Optimization, 1(3), 127-239.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import DegenerateStepError

STEP_MIN = 1e-10
STEP_MAX = 1e10
FALLBACK_STEP = 1e-2

# |s.g| below this fraction of s.s is treated as zero curvature
_CURVATURE_EPS = 1e-12


def soft_threshold(u: NDArray, level) -> NDArray:
    """Elementwise sign(u) * max(|u| - level, 0)."""
    return np.sign(u) * np.maximum(np.abs(u) - level, 0.0)


def prox_elastic_net(
    beta: NDArray,
    grad: NDArray,
    step: float,
    lam: float,
    alpha: float,
    penalty_factor: NDArray | None = None,
) -> NDArray:
    """One proximal-gradient update for the elastic-net penalty.

    Args:
        beta: (p,) current coefficients.
        grad: (p,) gradient of the smooth loss at beta.
        step: Step size (> 0).
        lam: Penalty strength lambda (>= 0).
        alpha: Mixing parameter in [0, 1]; 1 is lasso, 0 is ridge.
        penalty_factor: (p,) per-coordinate multipliers, default all ones.

    Returns:
        (p,) updated coefficients. lam = 0 returns beta - step * grad.
    """
    u = beta - step * grad
    pf = 1.0 if penalty_factor is None else penalty_factor
    thresholded = soft_threshold(u, step * lam * alpha * pf)
    return thresholded / (1.0 + step * lam * (1.0 - alpha) * pf)


def penalty_value(
    beta: NDArray,
    lam: float,
    alpha: float,
    penalty_factor: NDArray | None = None,
) -> float:
    """Elastic-net penalty P(beta)."""
    pf = 1.0 if penalty_factor is None else penalty_factor
    terms = pf * (alpha * np.abs(beta) + 0.5 * (1.0 - alpha) * beta ** 2)
    return float(lam * np.sum(terms))


def bb_step(
    beta: NDArray,
    beta_prev: NDArray,
    grad: NDArray,
    grad_prev: NDArray,
    *,
    fallback: float = FALLBACK_STEP,
) -> float:
    """Long Barzilai-Borwein step s.s / |s.g|.

    Falls back to ``fallback`` when the curvature estimate is degenerate.
    The result always lies in [STEP_MIN, STEP_MAX].
    """
    try:
        step = _bb_ratio(beta - beta_prev, grad - grad_prev)
    except DegenerateStepError:
        step = fallback
    return float(min(max(step, STEP_MIN), STEP_MAX))


def _bb_ratio(s: NDArray, g: NDArray) -> float:
    ss = float(np.dot(s, s))
    sg = float(np.dot(s, g))
    if ss == 0.0 or not np.isfinite(sg) or abs(sg) <= _CURVATURE_EPS * ss:
        raise DegenerateStepError(
            f"degenerate Barzilai-Borwein denominator: s.s={ss:.3g}, s.g={sg:.3g}",
            s_dot_s=ss,
            s_dot_g=sg,
        )
    step = ss / abs(sg)
    if not np.isfinite(step):
        raise DegenerateStepError(
            f"non-finite Barzilai-Borwein step from s.s={ss:.3g}, s.g={sg:.3g}",
            s_dot_s=ss,
            s_dot_g=sg,
        )
    return step
