"""
Proximal-gradient iterator for one (lambda, alpha) pair.

Minimizes

    F(beta) = nll(beta) / W + P_lambda,alpha(beta)

where W is the total case weight and P the elastic-net penalty.

Algorithm (SpaRSA-style non-monotone proximal gradient):
    beta = beta0, step = initial_step
    For iteration 1..max_iter:
        trial = prox(beta - step * grad)
        While F(trial) > max(F over the last 10 accepted iterates)
                         - sigma / (2 step) ||trial - beta||^2:
            step = step / 2; recompute trial
        Accept trial
        Stop if ||trial - beta|| / step < tol
        step = Barzilai-Borwein step from the last two (beta, grad) pairs

The acceptance test only rejects steps that overshoot the recent history,
so most BB steps are taken unchanged; it guarantees the objective
sequence cannot diverge.

References:
    Wright, S. J., Nowak, R. D., & Figueiredo, M. A. T. (2009). Sparse
        reconstruction by separable approximation. IEEE Trans. Signal
        Processing, 57(7), 2479-2493.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pycoxnet.survival._loss import loss_and_gradient
from pycoxnet.survival._prox import (
    STEP_MIN,
    bb_step,
    penalty_value,
    prox_elastic_net,
)
from pycoxnet.survival._riskset import RiskSet

STATUS_CONVERGED = "converged"
STATUS_MAX_ITER = "max_iter"
STATUS_NON_FINITE = "non_finite"

INITIAL_STEP = 1.0
_HISTORY = 10
_SIGMA = 1e-4


@dataclass
class IterateState:
    """Mutable iterate owned by a single solver run."""
    beta: NDArray
    beta_prev: NDArray
    grad: NDArray
    grad_prev: NDArray
    step: float


@dataclass(frozen=True)
class ProxGradResult:
    """Outcome of one proximal-gradient run.

    Attributes:
        beta: (p,) final coefficients.
        n_iter: Iterations performed.
        converged: True if the stopping rule was met.
        status: "converged", "max_iter", or "non_finite" when no step
            down to STEP_MIN gave a finite objective.
        objective: Penalized objective F at beta.
        grad: (p,) gradient of the averaged loss at beta.
        step: Last step size.
        final_change: Last value of ||beta_new - beta|| / step.
        message: Warning text when the run did not converge, else None.
    """
    beta: NDArray
    n_iter: int
    converged: bool
    status: str
    objective: float
    grad: NDArray
    step: float
    final_change: float
    message: str | None = None


def smooth_loss(risk: RiskSet, beta: NDArray) -> tuple[float, NDArray]:
    """Averaged negative log partial likelihood and its gradient."""
    loss, grad = loss_and_gradient(risk, beta)
    return loss / risk.total_weight, grad / risk.total_weight


def objective(
    risk: RiskSet,
    beta: NDArray,
    lam: float,
    alpha: float,
    penalty_factor: NDArray | None = None,
) -> float:
    """Penalized objective F(beta)."""
    loss, _ = smooth_loss(risk, beta)
    return loss + penalty_value(beta, lam, alpha, penalty_factor)


def prox_grad_solve(
    risk: RiskSet,
    lam: float,
    alpha: float,
    beta0: NDArray | None = None,
    *,
    max_iter: int = 5000,
    tol: float = 1e-6,
    penalty_factor: NDArray | None = None,
    initial_step: float = INITIAL_STEP,
) -> ProxGradResult:
    """Run the proximal-gradient iterator at one (lambda, alpha).

    Args:
        risk: Risk sets of the data.
        lam: Penalty strength (>= 0).
        alpha: Mixing parameter in [0, 1].
        beta0: (p,) warm start, default zeros. Not modified.
        max_iter: Iteration ceiling.
        tol: Tolerance on ||beta_new - beta||_2 / step.
        penalty_factor: (p,) per-coordinate multipliers.
        initial_step: Step tried on the first iteration.

    Returns:
        ProxGradResult. Reaching max_iter is not an error: the current
        beta is returned with converged=False and a message. The same
        holds when every trial step overflows the objective, in which
        case the last finite iterate is kept.
    """
    p = risk.p
    beta = np.zeros(p) if beta0 is None else np.array(beta0, dtype=np.float64)

    loss, grad = smooth_loss(risk, beta)
    current = loss + penalty_value(beta, lam, alpha, penalty_factor)
    history = deque([current], maxlen=_HISTORY)

    state = IterateState(
        beta=beta,
        beta_prev=beta.copy(),
        grad=grad,
        grad_prev=grad.copy(),
        step=initial_step,
    )

    converged = False
    status = STATUS_MAX_ITER
    change = np.inf
    n_iter = 0

    for iteration in range(1, max_iter + 1):
        n_iter = iteration
        step = state.step
        reference = max(history)

        while True:
            trial = prox_elastic_net(
                state.beta, state.grad, step, lam, alpha, penalty_factor
            )
            trial_loss, trial_grad = smooth_loss(risk, trial)
            trial_obj = trial_loss + penalty_value(trial, lam, alpha, penalty_factor)
            delta = trial - state.beta
            bound = reference - _SIGMA / (2.0 * step) * float(np.dot(delta, delta))
            finite = bool(np.isfinite(trial_obj) and np.all(np.isfinite(trial_grad)))
            if (finite and trial_obj <= bound) or step <= STEP_MIN:
                break
            step *= 0.5

        if not finite:
            status = STATUS_NON_FINITE
            break

        change = float(np.sqrt(np.dot(delta, delta))) / step

        state.beta_prev = state.beta
        state.grad_prev = state.grad
        state.beta = trial
        state.grad = trial_grad
        state.step = step
        current = trial_obj
        history.append(current)

        if change < tol:
            converged = True
            status = STATUS_CONVERGED
            break

        state.step = bb_step(
            state.beta, state.beta_prev, state.grad, state.grad_prev,
            fallback=step,
        )

    message = None
    if status == STATUS_NON_FINITE:
        message = (
            f"objective is not finite at any step down to {STEP_MIN:.0e} "
            f"at lambda={lam:.6g}, stopped after {n_iter} iterations"
        )
    elif not converged:
        message = (
            f"proximal gradient did not converge in {max_iter} iterations "
            f"at lambda={lam:.6g} (change={change:.3g}, tol={tol:.3g})"
        )

    return ProxGradResult(
        beta=state.beta,
        n_iter=n_iter,
        converged=converged,
        status=status,
        objective=float(current),
        grad=state.grad,
        step=float(state.step),
        final_change=change,
        message=message,
    )
