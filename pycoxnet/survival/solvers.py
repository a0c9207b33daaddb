"""
Public API for penalized Cox regression.

    coxnet(y, X, alpha=...) -> CoxnetSolution
    coxnet_paths(y, X, alphas=[...]) -> tuple[CoxnetSolution, ...]
    cv_coxnet(y, X, nfolds=...) -> CVSolution
    lambda_max(y, X, alpha=...) -> float

Each function validates inputs into a SurvivalDesign and a frozen
configuration, runs the engine, and wraps the Result in a Solution.
Lambdas that hit max_iter are reported once per call through a
ConvergenceWarning and recorded in the Result's warnings.
"""

from __future__ import annotations

import warnings

import numpy as np

from pycoxnet.core.compute.timing import Timer
from pycoxnet.core.exceptions import ConfigError, ConvergenceWarning
from pycoxnet.core.result import Result
from pycoxnet.survival._common import CoxnetParams
from pycoxnet.survival._cv import cross_validate
from pycoxnet.survival._path import design_lambda_max, design_lambdas, fit_coxnet_params
from pycoxnet.survival._tasks import PathTask, lambda_tasks, run_tasks
from pycoxnet.survival.config import CoxnetConfig, CVConfig
from pycoxnet.survival.design import SurvivalDesign
from pycoxnet.survival.solution import CoxnetSolution, CVSolution

BACKEND = "cpu_proxgrad"
METHOD = "proximal gradient (Barzilai-Borwein, non-monotone)"


def coxnet(
    y,
    X,
    *,
    alpha: float = 1.0,
    lambdas=None,
    nlambdas: int = 100,
    lammin_fract: float | None = None,
    lamfract: float = 1.0,
    weights=None,
    feature_names=None,
    penalty_factor=None,
    standardize: bool = True,
    max_iter: int = 5000,
    tol: float = 1e-6,
    kkt_tol: float = 1e-4,
    strict: bool = False,
    lambda_max_only: bool = False,
) -> CoxnetSolution | float:
    """Elastic-net penalized Cox regression path.

    Matches the fit of R's glmnet(family = "cox") with Breslow ties.

    Parameters
    ----------
    y : array-like
        (n, 2) (time, event) or (n, 3) (start, stop, event) response.
    X : array-like
        (n, p) covariates, no intercept.
    alpha : float
        Elastic-net mixing in [0, 1]; 1 is lasso, 0 is ridge.
    lambdas : float, sequence or None
        Penalty strengths. None derives a log-spaced sequence from
        lambda_max.
    nlambdas : int
        Length of the derived sequence.
    lammin_fract : float or None
        Ratio of the smallest to the largest derived lambda
        (default 1e-4 if n > p, else 1e-2).
    lamfract : float
        Fraction of the derived sequence to fit, from the largest lambda.
    weights : array-like or None
        Non-negative case weights.
    feature_names : sequence of str or None
        Column names of X.
    penalty_factor : array-like or None
        (p,) per-coordinate penalty multipliers; 0 leaves a coordinate
        unpenalized.
    standardize : bool
        Fit on standardized columns; coefficients are always returned on
        the scale of X.
    max_iter : int
        Iteration ceiling per lambda.
    tol : float
        Stopping tolerance on ||beta_new - beta|| / step.
    kkt_tol : float
        Tolerance of the per-lambda KKT audit, relative to each
        coordinate's l1 threshold lambda * alpha * pf_j.
    strict : bool
        Raise ConvergenceError instead of warning when a lambda hits
        max_iter or its objective overflows.
    lambda_max_only : bool
        Return lambda_max without fitting.

    Returns
    -------
    CoxnetSolution, or float when lambda_max_only=True
    """
    design = SurvivalDesign.for_survival(
        y, X, weights=weights, feature_names=feature_names,
    )
    config = CoxnetConfig.build(
        alpha=alpha, lambdas=lambdas, nlambdas=nlambdas,
        lammin_fract=lammin_fract, lamfract=lamfract,
        max_iter=max_iter, tol=tol, kkt_tol=kkt_tol,
        standardize=standardize, penalty_factor=penalty_factor,
        strict=strict,
    )
    config.check_for(design.p)
    single_alpha = config.alpha

    if lambda_max_only:
        return design_lambda_max(
            design, single_alpha,
            standardize=config.standardize,
            penalty_factor=config.penalty_factor,
        )

    with Timer() as timer:
        with timer.stage('path'):
            params = fit_coxnet_params(design, config, single_alpha)

    messages = _path_warnings(params)
    _emit(messages)

    result = Result(
        params=params,
        info={
            'method': METHOD,
            'alpha': single_alpha,
            'n_lambdas': len(params.lambdas),
            'standardize': config.standardize,
        },
        timing=timer.result(),
        backend_name=BACKEND,
        warnings=messages,
    )
    return CoxnetSolution(_result=result)


def coxnet_paths(
    y,
    X,
    *,
    alphas=(1.0,),
    n_jobs: int = 1,
    weights=None,
    feature_names=None,
    **options,
) -> tuple[CoxnetSolution, ...]:
    """Fit one regularization path per alpha, optionally in parallel.

    Parameters
    ----------
    y, X, weights, feature_names
        As in coxnet().
    alphas : sequence of float
        Mixing values; each gets its own lambda sequence.
    n_jobs : int
        Worker count (joblib convention, -1 means all cores).
    **options
        Remaining keyword arguments of coxnet() (lambdas, nlambdas,
        lammin_fract, lamfract, penalty_factor, standardize, max_iter,
        tol, kkt_tol, strict).

    Returns
    -------
    tuple of CoxnetSolution, in the order of alphas
    """
    design = SurvivalDesign.for_survival(
        y, X, weights=weights, feature_names=feature_names,
    )
    config = CoxnetConfig.build(alpha=alphas, **options)
    config.check_for(design.p)
    if n_jobs == 0:
        raise ConfigError("n_jobs must not be 0", parameter='n_jobs', value=n_jobs)

    with Timer() as timer:
        with timer.stage('lambda_grid'):
            grid = [design_lambdas(design, config, a)[0] for a in config.alphas]
        tasks = list(lambda_tasks(config.alphas, grid))
        with timer.stage('paths'):
            fits = run_tasks(_fit_alpha, tasks, n_jobs, design=design, config=config)
    timing = timer.result()

    messages = tuple(m for params in fits for m in _path_warnings(params))
    _emit(messages)

    return tuple(
        CoxnetSolution(_result=Result(
            params=params,
            info={
                'method': METHOD,
                'alpha': params.alpha,
                'n_lambdas': len(params.lambdas),
                'standardize': config.standardize,
            },
            timing=timing,
            backend_name=BACKEND,
            warnings=_path_warnings(params),
        ))
        for params in fits
    )


def cv_coxnet(
    y,
    X,
    *,
    alpha=1.0,
    lambdas=None,
    nlambdas: int = 100,
    lammin_fract: float | None = None,
    lamfract: float = 1.0,
    nfolds: int = 10,
    foldids=None,
    groups=None,
    devtype: str = "vv",
    seed: int | None = None,
    n_jobs: int = 1,
    nclusters: int | None = None,
    refit: bool = False,
    weights=None,
    feature_names=None,
    penalty_factor=None,
    standardize: bool = True,
    max_iter: int = 5000,
    tol: float = 1e-6,
    kkt_tol: float = 1e-4,
    strict: bool = False,
) -> CVSolution:
    """Cross-validated elastic-net Cox regression.

    Matches R's cv.glmnet(family = "cox") for a single alpha and extends
    it to an alpha grid.

    Parameters
    ----------
    y, X, lambdas, nlambdas, lammin_fract, lamfract, weights,
    feature_names, penalty_factor, standardize, max_iter, tol, kkt_tol,
    strict
        As in coxnet().
    alpha : float or sequence of float
        One or more mixing values; the best (alpha, lambda) pair wins.
    nfolds : int
        Number of folds (>= 3).
    foldids : array-like or None
        Explicit fold of each row; overrides nfolds and seed.
    groups : array-like or None
        Subject labels; generated folds keep a subject's rows together.
    devtype : str
        Held-out deviance, "vv" (default) or "basic".
    seed : int or None
        Seed for fold assignment.
    n_jobs : int
        Worker count over (fold, alpha) tasks (joblib convention).
    nclusters : int or None
        Alias of n_jobs.
    refit : bool
        Refit the full path at the selected alpha on all data.

    Returns
    -------
    CVSolution
    """
    if nclusters is not None:
        n_jobs = nclusters

    design = SurvivalDesign.for_survival(
        y, X, weights=weights, feature_names=feature_names,
    )
    config = CoxnetConfig.build(
        alpha=alpha, lambdas=lambdas, nlambdas=nlambdas,
        lammin_fract=lammin_fract, lamfract=lamfract,
        max_iter=max_iter, tol=tol, kkt_tol=kkt_tol,
        standardize=standardize, penalty_factor=penalty_factor,
        strict=strict,
    )
    config.check_for(design.p)
    cv_config = CVConfig.build(
        nfolds=nfolds, foldids=foldids, devtype=devtype,
        seed=seed, n_jobs=n_jobs, refit=refit,
    )

    with Timer() as timer:
        with timer.stage('cross_validation'):
            params = cross_validate(design, config, cv_config, groups=groups)

    messages = []
    n_failed = int(params.fold_failures.sum())
    if n_failed > 0:
        total = params.fold_deviance.size
        messages.append(
            f"{n_failed} of {total} lambda values failed to converge "
            f"across {params.nfolds} folds"
        )
    if params.refit is not None:
        messages.extend(_path_warnings(params.refit))
    messages = tuple(messages)
    _emit(messages)

    result = Result(
        params=params,
        info={
            'method': METHOD,
            'alphas': tuple(config.alphas),
            'nfolds': params.nfolds,
            'devtype': params.devtype,
            'seed': cv_config.seed,
            'n_jobs': cv_config.n_jobs,
        },
        timing=timer.result(),
        backend_name=BACKEND,
        warnings=messages,
    )
    return CVSolution(_result=result)


def lambda_max(
    y,
    X,
    *,
    alpha: float = 1.0,
    weights=None,
    penalty_factor=None,
    standardize: bool = True,
) -> float:
    """Smallest lambda at which every penalized coefficient is zero.

    For alpha = 0 the value is computed with alpha floored at 1e-3.
    """
    design = SurvivalDesign.for_survival(y, X, weights=weights)
    config = CoxnetConfig.build(
        alpha=alpha, penalty_factor=penalty_factor, standardize=standardize,
    )
    config.check_for(design.p)
    return design_lambda_max(
        design, config.alpha,
        standardize=config.standardize,
        penalty_factor=config.penalty_factor,
    )


def _fit_alpha(task: PathTask, design: SurvivalDesign, config: CoxnetConfig) -> CoxnetParams:
    return fit_coxnet_params(design, config, task.alpha, lambdas=task.lambdas)


def _path_warnings(params: CoxnetParams) -> tuple[str, ...]:
    n_failed = int(np.sum(~params.converged))
    if n_failed == 0:
        return ()
    return (
        f"{n_failed} of {len(params.lambdas)} lambda values failed to "
        f"converge (alpha={params.alpha:g})",
    )


def _emit(messages: tuple[str, ...]) -> None:
    # stacklevel=3: caller of the public function
    for message in messages:
        warnings.warn(message, ConvergenceWarning, stacklevel=3)
