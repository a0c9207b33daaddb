"""
Post-hoc quantities computed from a fitted penalized Cox path.

Baseline hazard (Breslow, counting-process aware), centered at the
covariate means:

    H0(t) = sum_{t_k <= t} d_k / sum_{j in R(t_k)} w_j exp((x_j - xbar) beta)

Predictions for a subject with covariates x:

    lp        = (x - xbar) beta
    risk      = exp(lp)
    terms     = (x_j - xbar_j) beta_j per covariate
    expected  = (H0(stop) - H0(start)) * risk
    survival  = exp(-expected)
    P(T <= t) = 1 - S(t | x)

Concordance (Harrell) and two importance measures, coefficient magnitude
and permutation loss of concordance, complete the set.

Every function takes a solution object (CoxnetSolution, or a CVSolution
fitted with refit=True) and an optional lambda; the coefficients at the
path entry nearest that lambda are used.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import interp1d

from pycoxnet.core.exceptions import ConfigError, DataError, DimensionError
from pycoxnet.core.validation import check_2d, check_array, check_finite
from pycoxnet.survival._loss import log_risk_totals
from pycoxnet.survival._riskset import risk_set_for
from pycoxnet.survival._tasks import permutation_tasks, run_tasks
from pycoxnet.survival.design import SurvivalDesign

PREDICT_TYPES = ("lp", "risk", "terms", "expected", "survival")
PERMUTATION_ESTIMATES = ("mean", "quantile")


@dataclass(frozen=True)
class BaselineHazard:
    """Breslow cumulative hazard at the distinct stop times of the fit.

    Matches the layout of R's survival::basehaz() / survfit().
    """

    time: NDArray                # (m,) distinct stop times
    cumhaz: NDArray              # (m,) cumulative hazard at each time
    survival: NDArray            # (m,) exp(-cumhaz)
    n_risk: NDArray              # (m,) rows at risk at each time
    n_event: NDArray             # (m,) events at each time
    n_censor: NDArray            # (m,) censored rows at each time
    centered: bool


def baseline_hazard(solution, lam: float | None = None, *, centered: bool = True) -> BaselineHazard:
    """Breslow cumulative baseline hazard of the training data.

    Parameters
    ----------
    solution : CoxnetSolution or CVSolution
        Fitted path.
    lam : float or None
        Lambda whose coefficients are used (nearest path entry).
    centered : bool
        If True (default) the hazard of a subject at the covariate means;
        otherwise the hazard at all covariates equal to zero.

    Returns
    -------
    BaselineHazard
    """
    design = solution.design
    beta = solution.coef(lam)
    times = np.unique(design.stop)

    event_times, increments = _hazard_increments(design, beta, solution.means)
    cumulative = np.concatenate([[0.0], np.cumsum(increments)])
    cumhaz = cumulative[np.searchsorted(event_times, times, side='right')]
    if not centered:
        cumhaz = cumhaz * np.exp(-float(solution.means @ beta))

    stop_sorted = np.sort(design.stop)
    n_risk = len(stop_sorted) - np.searchsorted(stop_sorted, times, side='left')
    if design.start is not None:
        start_sorted = np.sort(design.start)
        n_risk = n_risk - (len(start_sorted) - np.searchsorted(start_sorted, times, side='left'))

    position = np.searchsorted(times, design.stop)
    n_rows = np.bincount(position, minlength=len(times))
    n_event = np.bincount(position, weights=design.event, minlength=len(times))

    return BaselineHazard(
        time=times,
        cumhaz=cumhaz,
        survival=np.exp(-cumhaz),
        n_risk=n_risk.astype(np.int64),
        n_event=np.rint(n_event).astype(np.int64),
        n_censor=(n_rows - np.rint(n_event)).astype(np.int64),
        centered=centered,
    )


def predict(
    solution,
    X=None,
    *,
    type: str = "lp",
    y=None,
    lam: float | None = None,
) -> NDArray:
    """Predictions from a fitted path.

    Parameters
    ----------
    solution : CoxnetSolution or CVSolution
        Fitted path.
    X : array-like or None
        (m, p) new covariates. Defaults to the training X.
    type : str
        "lp", "risk", "terms", "expected" or "survival".
    y : array-like or None
        (m, 2) or (m, 3) response, required by "expected" and "survival"
        for new X. Defaults to the training response when X is None.
    lam : float or None
        Lambda whose coefficients are used (nearest path entry).

    Returns
    -------
    NDArray
        (m,) predictions, or (m, p) for "terms".
    """
    if type not in PREDICT_TYPES:
        raise ConfigError(
            f"type must be one of {PREDICT_TYPES}, got {type!r}",
            parameter='type', value=type,
        )

    design = solution.design
    beta = solution.coef(lam)
    if X is None:
        X_new = design.X
        if y is None:
            y = design.y
    else:
        X_new = _check_new_X(X, design.p)

    centered = X_new - solution.means
    if type == "terms":
        return centered * beta
    lp = centered @ beta
    if type == "lp":
        return lp
    if type == "risk":
        return np.exp(lp)

    if y is None:
        raise ConfigError(
            f"type={type!r} needs the response y for new data",
            parameter='y', value=None,
        )
    y_arr = _check_response(y, len(X_new))

    cumhaz = _cumhaz_lookup(solution, beta)
    expected = cumhaz(y_arr[:, -2])
    if y_arr.shape[1] == 3:
        expected = expected - cumhaz(y_arr[:, 0])
    expected = expected * np.exp(lp)
    if type == "expected":
        return expected
    return np.exp(-expected)


def predict_survival(
    solution,
    X,
    times,
    lam: float | None = None,
) -> NDArray:
    """Survival probabilities S(t | x) = S0(t) ** exp(lp).

    Returns
    -------
    NDArray
        (m, len(times)) matrix, one row per subject.
    """
    beta = solution.coef(lam)
    X_new = _check_new_X(X, solution.design.p)
    times = np.atleast_1d(np.asarray(times, dtype=np.float64))
    lp = (X_new - solution.means) @ beta
    cumhaz = _cumhaz_lookup(solution, beta)(times)
    return np.exp(-np.outer(np.exp(lp), cumhaz))


def predict_risk(
    solution,
    X,
    times,
    lam: float | None = None,
) -> NDArray:
    """Event probabilities 1 - S(t | x) by each of ``times``.

    Returns
    -------
    NDArray
        (m, len(times)) matrix, one row per subject.
    """
    return 1.0 - predict_survival(solution, X, times, lam)


def concordance(y, risk) -> float:
    """Harrell's concordance index.

    A pair (i, j) is comparable when i has an event and i's time is
    earlier than j's, or the times tie and j is censored. It is
    concordant when the higher risk belongs to i; tied risks count 1/2.
    For (start, stop, event) data the stop time is used.

    Returns 0.5 when there are no comparable pairs.
    """
    y_arr = check_array(y, 'y')
    check_2d(y_arr, 'y')
    risk = np.asarray(risk, dtype=np.float64).ravel()
    if len(risk) != y_arr.shape[0]:
        raise DimensionError(
            f"risk: expected {y_arr.shape[0]} values to match y, got {len(risk)}"
        )
    time = y_arr[:, -2]
    event = y_arr[:, -1]

    concordant = 0.0
    discordant = 0.0
    tied_risk = 0.0

    for i in np.flatnonzero(event == 1):
        later = (time > time[i]) | ((time == time[i]) & (event == 0))
        if not np.any(later):
            continue
        concordant += np.sum(risk[i] > risk[later])
        discordant += np.sum(risk[i] < risk[later])
        tied_risk += np.sum(risk[i] == risk[later])

    total = concordant + discordant + tied_risk
    if total == 0:
        return 0.5
    return float((concordant + 0.5 * tied_risk) / total)


def coefficient_importance(
    solution,
    lam: float | None = None,
    *,
    relative: bool = True,
) -> dict[str, tuple[float, int]]:
    """Coefficient-magnitude importance, largest first.

    Returns
    -------
    dict
        feature name -> (importance, sign). With relative=True the
        importances are scaled to sum to 1 (all zero when beta is zero).
    """
    beta = solution.coef(lam)
    magnitude = np.abs(beta)
    if relative and magnitude.sum() > 0:
        magnitude = magnitude / magnitude.sum()
    order = np.argsort(-magnitude, kind='mergesort')
    names = solution.design.feature_names
    return {
        names[j]: (float(magnitude[j]), int(np.sign(beta[j])))
        for j in order
    }


def permutation_importance(
    solution,
    X=None,
    y=None,
    *,
    nrep: int = 50,
    estimate: str = "mean",
    probs=(0.025, 0.5, 0.975),
    seed: int | None = None,
    n_jobs: int = 1,
    lam: float | None = None,
) -> dict[str, float] | dict[str, tuple[float, float, float]]:
    """Permutation importance of each covariate on the concordance scale.

    Each column of X is shuffled ``nrep`` times, the permuted data are
    scored with predict(type="risk"), and every repetition gives the
    relative loss of concordance (C - C_perm) / C against the unpermuted
    data. Columns are processed as independent tasks, each with its own
    random stream spawned from ``seed``, so results do not depend on
    ``n_jobs``.

    Parameters
    ----------
    solution : CoxnetSolution or CVSolution
        Fitted path.
    X, y : array-like or None
        Data to score. Default to the training data; new X needs y.
    nrep : int
        Permutations per column.
    estimate : str
        "mean" for the average relative loss, or "quantile" for the
        (lower, estimate, upper) quantiles at ``probs``.
    probs : sequence of 3 floats
        Quantile levels used by estimate="quantile".
    seed : int or None
        Seed of the permutations.
    n_jobs : int
        Worker count (joblib convention, -1 means all cores).
    lam : float or None
        Lambda whose coefficients are used (nearest path entry).

    Returns
    -------
    dict
        feature name -> mean relative loss, or -> (lower, estimate,
        upper), in column order.

    Raises
    ------
    ConfigError
        If an argument is out of range, or new X comes without y.
    DataError
        If the unpermuted concordance is zero.
    """
    if estimate not in PERMUTATION_ESTIMATES:
        raise ConfigError(
            f"estimate must be one of {PERMUTATION_ESTIMATES}, got {estimate!r}",
            parameter='estimate', value=estimate,
        )
    if isinstance(nrep, bool) or not isinstance(nrep, (int, np.integer)) or nrep < 1:
        raise ConfigError(
            f"nrep must be a positive integer, got {nrep!r}",
            parameter='nrep', value=nrep,
        )
    probs = np.asarray(probs, dtype=np.float64)
    if probs.shape != (3,) or np.any((probs < 0) | (probs > 1)) or np.any(np.diff(probs) < 0):
        raise ConfigError(
            "probs must be 3 non-decreasing levels in [0, 1]",
            parameter='probs', value=probs.tolist(),
        )
    if n_jobs == 0:
        raise ConfigError("n_jobs must not be 0", parameter='n_jobs', value=n_jobs)

    design = solution.design
    if X is None:
        X_arr = design.X
        if y is None:
            y = design.y
    else:
        X_arr = _check_new_X(X, design.p)
    if y is None:
        raise ConfigError(
            "permutation importance on new data needs the response y",
            parameter='y', value=None,
        )
    y_arr = _check_response(y, len(X_arr))

    baseline = concordance(y_arr, predict(solution, X_arr, type="risk", lam=lam))
    if baseline == 0:
        raise DataError("concordance of the unpermuted data is zero")

    tasks = permutation_tasks(design.feature_names, seed)
    permuted = run_tasks(
        _permuted_concordance, tasks, n_jobs,
        solution=solution, X=X_arr, y=y_arr, nrep=int(nrep), lam=lam,
    )

    out = {}
    for task, scores in zip(tasks, permuted):
        loss = (baseline - scores) / baseline
        if estimate == "mean":
            out[task.name] = float(np.mean(loss))
        else:
            lower, middle, upper = np.quantile(loss, probs)
            out[task.name] = (float(lower), float(middle), float(upper))
    return out


def _permuted_concordance(task, *, solution, X, y, nrep, lam) -> NDArray:
    """Concordance after each of nrep shuffles of one column."""
    rng = np.random.default_rng(task.seed)
    X_perm = X.copy()
    scores = np.empty(nrep)
    for r in range(nrep):
        X_perm[:, task.column] = rng.permutation(X[:, task.column])
        scores[r] = concordance(y, predict(solution, X_perm, type="risk", lam=lam))
    return scores


def _hazard_increments(
    design: SurvivalDesign,
    beta: NDArray,
    means: NDArray,
) -> tuple[NDArray, NDArray]:
    """Breslow hazard increments d_k / S0(t_k) at the distinct event times."""
    risk = risk_set_for(design)
    eta = (design.X - means) @ beta
    log_s0 = log_risk_totals(risk, eta)
    return risk.event_times, np.exp(np.log(risk.n_events) - log_s0)


def _cumhaz_lookup(solution, beta: NDArray):
    """Right-continuous step function t -> H0(t), zero before the first event."""
    event_times, increments = _hazard_increments(solution.design, beta, solution.means)
    cumhaz = np.cumsum(increments)
    if len(event_times) == 1:
        first = float(event_times[0])
        return lambda t: np.where(np.asarray(t) >= first, cumhaz[0], 0.0)
    return interp1d(
        event_times, cumhaz,
        kind='previous',
        bounds_error=False,
        fill_value=(0.0, float(cumhaz[-1])),
        assume_sorted=True,
    )


def _check_new_X(X, p: int) -> NDArray:
    X_arr = check_array(X, 'X')
    if X_arr.ndim == 1:
        X_arr = X_arr.reshape(1, -1) if p > 1 else X_arr.reshape(-1, 1)
    check_2d(X_arr, 'X')
    check_finite(X_arr, 'X')
    if X_arr.shape[1] != p:
        raise DimensionError(f"X: expected {p} columns, got {X_arr.shape[1]}")
    return X_arr


def _check_response(y, n: int) -> NDArray:
    y_arr = check_array(y, 'y')
    check_2d(y_arr, 'y')
    check_finite(y_arr, 'y')
    if y_arr.shape[1] not in (2, 3):
        raise DimensionError(
            f"y: expected 2 or 3 columns, got {y_arr.shape[1]}"
        )
    if y_arr.shape[0] != n:
        raise DimensionError(
            f"y: expected {n} rows to match X, got {y_arr.shape[0]}"
        )
    return y_arr
