"""
K-fold cross-validation of the elastic-net Cox path.

For every (fold, alpha) pair the path is fitted on the K-1 training
folds, using the lambda sequence derived once from the full data, and
each lambda's coefficients are scored on the held-out fold:

    basic:  2 * (nll_full(beta) - nll_train(beta))
    vv:     2 * sum_{i in test, event} w_i (log S0_full(t_i) - eta_i)

"basic" is the contribution of the held-out fold to the full-data
partial likelihood. "vv" scores only the held-out events, each against
its full-data risk set, so risk sets spanning the train/test boundary
keep the training rows.

Selection:
    lambda_min   argmin of the fold-mean deviance
    lambda_1se   largest lambda with mean <= min + se(min)
    alpha        global minimum over alphas; ties go to the first alpha
                 and the largest lambda

References:
    Verweij, P. J. M., & van Houwelingen, H. C. (1993). Cross-validation
        in survival analysis. Statistics in Medicine, 12(24), 2305-2314.
    Simon, N., Friedman, J., Hastie, T., & Tibshirani, R. (2011).
        Regularization paths for Cox's proportional hazards model via
        coordinate descent. Journal of Statistical Software, 39(5).
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import DataError
from pycoxnet.survival._common import CVParams
from pycoxnet.survival._folds import assign_folds, check_foldids
from pycoxnet.survival._loss import log_risk_totals, neg_log_lik
from pycoxnet.survival._path import (
    design_lambdas,
    fit_coxnet_params,
    fit_design_path,
)
from pycoxnet.survival._riskset import RiskSet, risk_set_for
from pycoxnet.survival._tasks import CVTask, cv_tasks, run_tasks
from pycoxnet.survival.config import CoxnetConfig, CVConfig
from pycoxnet.survival.design import SurvivalDesign

logger = logging.getLogger(__name__)


def cv_deviance(
    full_risk: RiskSet,
    coefficients: NDArray,
    test: NDArray,
    devtype: str,
    train_risk: RiskSet | None = None,
) -> NDArray:
    """Held-out deviance of every row of a coefficient path.

    Args:
        full_risk: Risk sets of the complete data (original X scale).
        coefficients: (k, p) path fitted on the training rows.
        test: (n,) boolean mask of held-out rows.
        devtype: "basic" or "vv".
        train_risk: Risk sets of the training rows, required for "basic".

    Returns:
        (k,) deviance per lambda.
    """
    coefficients = np.atleast_2d(coefficients)
    if devtype == "basic":
        if train_risk is None:
            raise ValueError("basic deviance needs the training risk set")
        return np.array([
            2.0 * (neg_log_lik(full_risk, beta) - neg_log_lik(train_risk, beta))
            for beta in coefficients
        ])

    rows = full_risk.event_rows[test[full_risk.event_rows]]
    if len(rows) == 0:
        return np.zeros(len(coefficients))
    time_index = full_risk.event_time_index[test[full_risk.event_rows]]
    w = full_risk.weights[rows]

    out = np.empty(len(coefficients))
    for k, beta in enumerate(coefficients):
        eta = full_risk.X @ beta
        log_s0 = log_risk_totals(full_risk, eta)
        out[k] = 2.0 * float(np.dot(w, log_s0[time_index] - eta[rows]))
    return out


def _fit_fold(
    task: CVTask,
    design: SurvivalDesign,
    foldids: NDArray,
    full_risk: RiskSet,
    config: CoxnetConfig,
    devtype: str,
) -> tuple[NDArray, int]:
    """Worker: fit one (fold, alpha) path and score its held-out fold."""
    test = foldids == task.fold
    train = design.subset(~test)
    if not np.any((train.event == 1) & (train.weights > 0)):
        raise DataError(
            f"fold {task.fold}: the training rows contain no events",
            rows=np.flatnonzero(~test).tolist(),
        )

    path = fit_design_path(train, task.lambdas, task.alpha, **config.solver_options())
    train_risk = risk_set_for(train) if devtype == "basic" else None
    deviance = cv_deviance(full_risk, path.coefficients, test, devtype, train_risk)

    logger.debug(
        "fold %d, alpha=%g: %d lambdas, %d not converged",
        task.fold, task.alpha, len(path), path.n_failed,
    )
    return deviance, path.n_failed


def resolve_foldids(
    design: SurvivalDesign,
    cv_config: CVConfig,
    groups: NDArray | None = None,
) -> NDArray:
    """Fold ids actually used: user-supplied, or drawn from the seed."""
    if cv_config.foldids is not None:
        return check_foldids(cv_config.foldids, design.n)
    rng = np.random.default_rng(cv_config.seed)
    return assign_folds(design.n, cv_config.nfolds, rng, groups=groups)


def aggregate(fold_deviance: NDArray) -> tuple[NDArray, NDArray]:
    """Fold mean and standard error sd / sqrt(K) of a (K, a, k) array."""
    n_folds = fold_deviance.shape[0]
    cvm = np.mean(fold_deviance, axis=0)
    cvse = np.std(fold_deviance, axis=0, ddof=1) / np.sqrt(n_folds)
    return cvm, cvse


def select(cvm: NDArray, cvse: NDArray) -> tuple[int, int, int]:
    """(alpha index, lambda_min index, lambda_1se index) of a (a, k) grid.

    Lambdas within each alpha are ordered largest first, so the first
    index reaching the minimum is the largest lambda.
    """
    flat = int(np.argmin(cvm))
    alpha_index, min_index = np.unravel_index(flat, cvm.shape)
    row = cvm[alpha_index]
    bound = row[min_index] + cvse[alpha_index, min_index]
    one_se_index = int(np.flatnonzero(row <= bound)[0])
    return int(alpha_index), int(min_index), one_se_index


def cross_validate(
    design: SurvivalDesign,
    config: CoxnetConfig,
    cv_config: CVConfig,
    *,
    groups: NDArray | None = None,
) -> CVParams:
    """Cross-validate the path over every alpha of config.

    Args:
        design: Full data.
        config: Penalty grid and solver options.
        cv_config: Fold and worker options.
        groups: Optional subject labels keeping a subject's rows together
            when folds are generated.

    Returns:
        CVParams
    """
    foldids = resolve_foldids(design, cv_config, groups)
    n_folds = int(foldids.max())

    lambda_grid = [design_lambdas(design, config, alpha)[0] for alpha in config.alphas]
    n_lambdas = min(len(lam) for lam in lambda_grid)
    lambda_grid = [lam[:n_lambdas] for lam in lambda_grid]

    full_risk = risk_set_for(design)
    tasks = cv_tasks(foldids, config.alphas, lambda_grid)
    logger.debug(
        "cross-validating %d alpha(s) x %d lambdas over %d folds (%d tasks)",
        len(config.alphas), n_lambdas, n_folds, len(tasks),
    )

    results = run_tasks(
        _fit_fold, tasks, cv_config.n_jobs,
        design=design,
        foldids=foldids,
        full_risk=full_risk,
        config=config,
        devtype=cv_config.devtype,
    )

    n_alphas = len(config.alphas)
    fold_deviance = np.empty((n_folds, n_alphas, n_lambdas))
    fold_failures = np.zeros((n_folds, n_alphas), dtype=np.int64)
    for task, (deviance, n_failed) in zip(tasks, results):
        fold_deviance[task.fold_index, task.alpha_index] = deviance
        fold_failures[task.fold_index, task.alpha_index] = n_failed

    cvm, cvse = aggregate(fold_deviance)
    alpha_index, min_index, one_se_index = select(cvm, cvse)
    lambdas = np.vstack(lambda_grid)
    alpha_optimal = config.alphas[alpha_index]

    refit = None
    if cv_config.refit:
        refit = fit_coxnet_params(
            design, config, alpha_optimal, lambdas=lambdas[alpha_index]
        )

    logger.debug(
        "selected alpha=%g, lambda_min=%.6g, lambda_1se=%.6g",
        alpha_optimal, lambdas[alpha_index, min_index],
        lambdas[alpha_index, one_se_index],
    )

    return CVParams(
        alphas=np.asarray(config.alphas, dtype=np.float64),
        lambdas=lambdas,
        cvm=cvm,
        cvse=cvse,
        cvlo=cvm - cvse,
        cvup=cvm + cvse,
        fold_deviance=fold_deviance,
        fold_failures=fold_failures,
        foldids=foldids,
        nfolds=n_folds,
        devtype=cv_config.devtype,
        alpha_index=alpha_index,
        lambda_min_index=min_index,
        lambda_1se_index=one_se_index,
        alpha_optimal=float(alpha_optimal),
        lambda_min=float(lambdas[alpha_index, min_index]),
        lambda_1se=float(lambdas[alpha_index, one_se_index]),
        refit=refit,
    )
