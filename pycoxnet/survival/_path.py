"""
Warm-started regularization path.

The iterator is run over a decreasing lambda sequence; the solution (and
the last step size) at lambda_k initializes the run at lambda_{k+1}. The
first lambda starts from zero, or from a caller-supplied beta0.

Lambda sequence (glmnet convention):

    lambda_max = max_j |grad_j(0)| / alpha
    lambdas    = logspace(lambda_max, lambda_max * lammin_fract, nlambdas)

truncated to the first ceil(lamfract * nlambdas) values when only the
strong-penalty end of the path is wanted.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import ConvergenceError
from pycoxnet.survival._common import CoxnetParams
from pycoxnet.survival._kkt import kkt_check, lambda_max
from pycoxnet.survival._riskset import RiskSet, risk_set_for
from pycoxnet.survival._solver import INITIAL_STEP, STATUS_MAX_ITER, prox_grad_solve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegularizationPath:
    """Coefficients and diagnostics along a lambda sequence.

    Attributes:
        lambdas: (k,) penalty strengths, largest first.
        alpha: Mixing parameter shared by the whole path.
        coefficients: (k, p) coefficients, one row per lambda.
        n_iter: (k,) iterations used at each lambda.
        converged: (k,) convergence flag at each lambda.
        objective: (k,) penalized objective at each solution.
        kkt_violations: (k,) number of coordinates failing the KKT audit.
        messages: Warning messages from lambdas that hit max_iter.
    """
    lambdas: NDArray
    alpha: float
    coefficients: NDArray
    n_iter: NDArray
    converged: NDArray
    objective: NDArray
    kkt_violations: NDArray
    messages: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.lambdas)

    @property
    def n_nonzero(self) -> NDArray:
        """(k,) number of nonzero coefficients at each lambda."""
        return np.count_nonzero(self.coefficients, axis=1)

    @property
    def n_failed(self) -> int:
        return int(np.sum(~self.converged))

    def convergence_message(self) -> str | None:
        """Aggregate warning text, or None if every lambda converged."""
        if self.n_failed == 0:
            return None
        return (
            f"{self.n_failed} of {len(self)} lambda values failed to "
            f"converge (alpha={self.alpha:g})"
        )

    def rescaled(self, scales: NDArray) -> RegularizationPath:
        """Map coefficients fitted on X / scales back to the scale of X."""
        return RegularizationPath(
            lambdas=self.lambdas,
            alpha=self.alpha,
            coefficients=self.coefficients / scales,
            n_iter=self.n_iter,
            converged=self.converged,
            objective=self.objective,
            kkt_violations=self.kkt_violations,
            messages=self.messages,
        )


def lambda_sequence(
    lam_max: float,
    nlambdas: int = 100,
    lammin_fract: float = 1e-4,
    lamfract: float = 1.0,
) -> NDArray:
    """Log-spaced decreasing lambda sequence starting at lam_max."""
    if nlambdas == 1:
        lambdas = np.array([lam_max], dtype=np.float64)
    else:
        lambdas = np.exp(np.linspace(
            math.log(lam_max), math.log(lam_max * lammin_fract), nlambdas
        ))
    keep = max(1, math.ceil(lamfract * nlambdas))
    return lambdas[:keep]


def fit_path(
    risk: RiskSet,
    lambdas: NDArray,
    alpha: float,
    *,
    beta0: NDArray | None = None,
    max_iter: int = 5000,
    tol: float = 1e-6,
    kkt_tol: float = 1e-4,
    penalty_factor: NDArray | None = None,
    strict: bool = False,
) -> RegularizationPath:
    """Run the proximal-gradient iterator along a lambda sequence.

    Args:
        risk: Risk sets of the (possibly standardized) data.
        lambdas: Decreasing penalty strengths.
        alpha: Mixing parameter.
        beta0: Warm start for the first lambda, default zeros.
        max_iter: Iteration ceiling per lambda.
        tol: Stopping tolerance per lambda.
        kkt_tol: Relative tolerance of the post-convergence KKT audit.
        penalty_factor: (p,) per-coordinate multipliers.
        strict: If True, raise ConvergenceError at the first lambda that
            hits max_iter or stops on a non-finite objective; otherwise
            record the flag and continue.

    Returns:
        RegularizationPath in the fitted coordinates of ``risk``.

    Raises:
        ConvergenceError: In strict mode only.
    """
    lambdas = np.asarray(lambdas, dtype=np.float64)
    k = len(lambdas)

    coefficients = np.zeros((k, risk.p))
    n_iter = np.zeros(k, dtype=np.int64)
    converged = np.zeros(k, dtype=bool)
    objective = np.zeros(k)
    kkt_violations = np.zeros(k, dtype=np.int64)
    messages: list[str] = []

    beta = None if beta0 is None else np.asarray(beta0, dtype=np.float64)
    step = INITIAL_STEP

    for i, lam in enumerate(lambdas):
        fit = prox_grad_solve(
            risk, float(lam), alpha, beta,
            max_iter=max_iter,
            tol=tol,
            penalty_factor=penalty_factor,
            initial_step=step,
        )

        if not fit.converged:
            if strict:
                raise ConvergenceError(
                    fit.message,
                    iterations=fit.n_iter,
                    final_change=fit.final_change,
                    reason=(
                        'max_iterations' if fit.status == STATUS_MAX_ITER
                        else 'non_finite_objective'
                    ),
                    threshold=tol,
                    lam=float(lam),
                )
            messages.append(fit.message)

        report = kkt_check(
            fit.grad, fit.beta, float(lam), alpha,
            tol=kkt_tol, penalty_factor=penalty_factor,
        )
        if not report.all_passed:
            logger.debug(
                "KKT audit at lambda=%.6g: %d coordinate(s) violate "
                "stationarity (max violation %.3g)",
                lam, report.n_violations, float(np.max(report.violation)),
            )

        coefficients[i] = fit.beta
        n_iter[i] = fit.n_iter
        converged[i] = fit.converged
        objective[i] = fit.objective
        kkt_violations[i] = report.n_violations

        beta = fit.beta
        step = fit.step

        logger.debug(
            "lambda %d/%d = %.6g: %s after %d iterations, %d nonzero",
            i + 1, k, lam, fit.status, fit.n_iter,
            int(np.count_nonzero(fit.beta)),
        )

    return RegularizationPath(
        lambdas=lambdas,
        alpha=float(alpha),
        coefficients=coefficients,
        n_iter=n_iter,
        converged=converged,
        objective=objective,
        kkt_violations=kkt_violations,
        messages=tuple(messages),
    )


# ── Design-level helpers (standardize, fit, map back) ────────────────


def fitting_scales(design, standardize: bool) -> tuple[NDArray, NDArray]:
    """Return (X used for fitting, column scales) for a SurvivalDesign.

    With standardize=True the columns are centered and divided by their
    weighted standard deviation; centering leaves the partial likelihood
    unchanged. Otherwise X is used as given with unit scales.
    """
    if not standardize:
        return design.X, np.ones(design.p)
    scales = design.column_scales()
    X_fit = (design.X - design.column_means()) / scales
    return X_fit, scales


def design_lambda_max(
    design,
    alpha: float,
    *,
    standardize: bool = True,
    penalty_factor: NDArray | None = None,
) -> float:
    """lambda_max of a SurvivalDesign in the fitting coordinates."""
    X_fit, _ = fitting_scales(design, standardize)
    return lambda_max(risk_set_for(design, X_fit), alpha, penalty_factor)


def fit_design_path(
    design,
    lambdas: NDArray,
    alpha: float,
    *,
    standardize: bool = True,
    max_iter: int = 5000,
    tol: float = 1e-6,
    kkt_tol: float = 1e-4,
    penalty_factor: NDArray | None = None,
    strict: bool = False,
    beta0: NDArray | None = None,
) -> RegularizationPath:
    """Fit a path on a SurvivalDesign; coefficients on the scale of design.X.

    beta0, when given, is on the scale of design.X as well.
    """
    X_fit, scales = fitting_scales(design, standardize)
    risk = risk_set_for(design, X_fit)
    start = None if beta0 is None else np.asarray(beta0) * scales
    path = fit_path(
        risk, lambdas, alpha,
        beta0=start,
        max_iter=max_iter,
        tol=tol,
        kkt_tol=kkt_tol,
        penalty_factor=penalty_factor,
        strict=strict,
    )
    return path.rescaled(scales)


def design_lambdas(design, config, alpha: float) -> tuple[NDArray, float]:
    """Lambda sequence of one alpha on a SurvivalDesign, and its lambda_max.

    User-supplied lambdas are used as given. A derived sequence starts at
    lambda_max; when lambda_max is zero (no penalized coordinate moves
    the null gradient) the path collapses to the single value 0.
    """
    lam_max = design_lambda_max(
        design, alpha,
        standardize=config.standardize,
        penalty_factor=config.penalty_factor,
    )
    if config.lambdas is not None:
        return config.lambdas, lam_max
    if lam_max <= 0:
        return np.zeros(1), lam_max
    lambdas = lambda_sequence(
        lam_max,
        nlambdas=config.nlambdas,
        lammin_fract=config.resolve_lammin_fract(design.n, design.p),
        lamfract=config.lamfract,
    )
    return lambdas, lam_max


def fit_coxnet_params(
    design,
    config,
    alpha: float,
    lambdas: NDArray | None = None,
) -> CoxnetParams:
    """Fit the path of one alpha and package it as CoxnetParams."""
    sequence, lam_max = design_lambdas(design, config, alpha)
    if lambdas is None:
        lambdas = sequence
    path = fit_design_path(design, lambdas, alpha, **config.solver_options())
    return CoxnetParams(
        alpha=float(alpha),
        lambdas=path.lambdas,
        coefficients=path.coefficients,
        n_iter=path.n_iter,
        converged=path.converged,
        objective=path.objective,
        kkt_violations=path.kkt_violations,
        lambda_max=lam_max,
        feature_names=design.feature_names,
        means=design.column_means(),
        standardize=config.standardize,
        design=design,
    )
