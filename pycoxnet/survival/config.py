"""
Validated configuration for penalized Cox fits and cross-validation.

CoxnetConfig holds the penalty grid and solver options; CVConfig holds
the fold and worker options. Both are frozen and validated at
construction, so a ConfigError is raised before any optimization work
begins.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import ConfigError

DEVTYPES = ("basic", "vv")


@dataclass(frozen=True)
class CoxnetConfig:
    """Penalty grid and solver options.

    Attributes:
        alphas: Elastic-net mixing values, each in [0, 1].
        lambdas: User-supplied penalty strengths sorted decreasing, or
            None to derive a sequence from lambda_max.
        nlambdas: Length of the derived sequence.
        lammin_fract: Ratio of the smallest to the largest derived
            lambda; None picks 1e-4 when n > p, else 1e-2.
        lamfract: Fraction of the derived sequence actually fitted,
            counted from the largest lambda.
        max_iter: Iteration ceiling per lambda.
        tol: Stopping tolerance per lambda.
        kkt_tol: Tolerance of the KKT audit, relative to each l1 threshold.
        standardize: Fit on standardized columns and map back.
        penalty_factor: Per-coordinate penalty multipliers (0 means
            unpenalized), or None for all ones.
        strict: Raise ConvergenceError instead of flagging lambdas that
            hit max_iter.
    """
    alphas: tuple[float, ...]
    lambdas: NDArray | None
    nlambdas: int
    lammin_fract: float | None
    lamfract: float
    max_iter: int
    tol: float
    kkt_tol: float
    standardize: bool
    penalty_factor: NDArray | None
    strict: bool

    @classmethod
    def build(
        cls,
        *,
        alpha=1.0,
        lambdas=None,
        nlambdas: int = 100,
        lammin_fract: float | None = None,
        lamfract: float = 1.0,
        max_iter: int = 5000,
        tol: float = 1e-6,
        kkt_tol: float = 1e-4,
        standardize: bool = True,
        penalty_factor=None,
        strict: bool = False,
    ) -> CoxnetConfig:
        """Create a configuration with validation.

        Raises:
            ConfigError: If any option is out of range.
        """
        alphas = tuple(float(a) for a in np.atleast_1d(np.asarray(alpha, dtype=np.float64)))
        if len(alphas) == 0:
            raise ConfigError("alpha: at least one value is required",
                              parameter='alpha', value=alpha)
        for a in alphas:
            if not (0.0 <= a <= 1.0):
                raise ConfigError(f"alpha must be in [0, 1], got {a}",
                                  parameter='alpha', value=a)

        lambdas_arr = None
        if lambdas is not None:
            lambdas_arr = np.atleast_1d(np.asarray(lambdas, dtype=np.float64))
            if lambdas_arr.ndim != 1 or len(lambdas_arr) == 0:
                raise ConfigError("lambdas: expected a scalar or a 1D sequence",
                                  parameter='lambdas', value=lambdas)
            if not np.all(np.isfinite(lambdas_arr)) or np.any(lambdas_arr < 0):
                raise ConfigError(
                    f"lambdas must be finite and >= 0, got {lambdas_arr}",
                    parameter='lambdas', value=lambdas,
                )
            lambdas_arr = np.sort(lambdas_arr)[::-1].copy()

        _check_int(nlambdas, 'nlambdas', minimum=1)
        if lammin_fract is not None and not (0.0 < lammin_fract < 1.0):
            raise ConfigError(
                f"lammin_fract must be in (0, 1), got {lammin_fract}",
                parameter='lammin_fract', value=lammin_fract,
            )
        if not (0.0 < lamfract <= 1.0):
            raise ConfigError(f"lamfract must be in (0, 1], got {lamfract}",
                              parameter='lamfract', value=lamfract)
        _check_int(max_iter, 'max_iter', minimum=1)
        _check_positive(tol, 'tol')
        _check_positive(kkt_tol, 'kkt_tol')

        pf = None
        if penalty_factor is not None:
            pf = np.asarray(penalty_factor, dtype=np.float64).ravel().copy()
            if not np.all(np.isfinite(pf)) or np.any(pf < 0):
                raise ConfigError(
                    "penalty_factor must be finite and non-negative",
                    parameter='penalty_factor', value=penalty_factor,
                )

        return cls(
            alphas=alphas,
            lambdas=lambdas_arr,
            nlambdas=int(nlambdas),
            lammin_fract=None if lammin_fract is None else float(lammin_fract),
            lamfract=float(lamfract),
            max_iter=int(max_iter),
            tol=float(tol),
            kkt_tol=float(kkt_tol),
            standardize=bool(standardize),
            penalty_factor=pf,
            strict=bool(strict),
        )

    @property
    def alpha(self) -> float:
        """The single alpha of a one-alpha configuration."""
        if len(self.alphas) != 1:
            raise ConfigError(
                f"expected a single alpha, got {len(self.alphas)}",
                parameter='alpha', value=self.alphas,
            )
        return self.alphas[0]

    def check_for(self, p: int) -> None:
        """Validate options that depend on the number of covariates."""
        if self.penalty_factor is not None and len(self.penalty_factor) != p:
            raise ConfigError(
                f"penalty_factor: expected {p} values, got {len(self.penalty_factor)}",
                parameter='penalty_factor', value=self.penalty_factor,
            )

    def resolve_lammin_fract(self, n: int, p: int) -> float:
        if self.lammin_fract is not None:
            return self.lammin_fract
        return 1e-4 if n > p else 1e-2

    def solver_options(self) -> dict:
        """Keyword arguments shared by every path fit."""
        return {
            'standardize': self.standardize,
            'max_iter': self.max_iter,
            'tol': self.tol,
            'kkt_tol': self.kkt_tol,
            'penalty_factor': self.penalty_factor,
            'strict': self.strict,
        }


@dataclass(frozen=True)
class CVConfig:
    """Cross-validation options.

    Attributes:
        nfolds: Number of folds (>= 3); ignored when foldids is given.
        foldids: User-supplied fold labels, or None.
        devtype: Held-out deviance, "basic" or "vv".
        seed: Seed of the generator used for fold assignment.
        n_jobs: Worker count (joblib convention, -1 means all cores);
            values <= 1 other than -1 run sequentially.
        refit: Refit the full path at the selected alpha on all data.
    """
    nfolds: int
    foldids: NDArray | None
    devtype: str
    seed: int | None
    n_jobs: int
    refit: bool

    @classmethod
    def build(
        cls,
        *,
        nfolds: int = 10,
        foldids=None,
        devtype: str = "vv",
        seed: int | None = None,
        n_jobs: int = 1,
        refit: bool = False,
    ) -> CVConfig:
        """Create a cross-validation configuration with validation.

        Raises:
            ConfigError: If any option is out of range.
        """
        foldids_arr = None
        if foldids is None:
            _check_int(nfolds, 'nfolds', minimum=3)
        else:
            foldids_arr = np.asarray(foldids).ravel().copy()
            if not np.issubdtype(foldids_arr.dtype, np.integer):
                raise ConfigError(
                    f"foldids must be integers, got dtype {foldids_arr.dtype}",
                    parameter='foldids', value=foldids,
                )
            n_unique = len(np.unique(foldids_arr))
            if n_unique < 3:
                raise ConfigError(
                    f"foldids must define at least 3 folds, got {n_unique}",
                    parameter='foldids', value=foldids,
                )
            nfolds = n_unique

        if devtype not in DEVTYPES:
            raise ConfigError(
                f"devtype must be 'basic' or 'vv', got {devtype!r}",
                parameter='devtype', value=devtype,
            )
        if seed is not None:
            _check_int(seed, 'seed', minimum=0)
        _check_int(n_jobs, 'n_jobs', minimum=-1)
        if n_jobs == 0:
            raise ConfigError("n_jobs must not be 0", parameter='n_jobs', value=n_jobs)

        return cls(
            nfolds=int(nfolds),
            foldids=foldids_arr,
            devtype=devtype,
            seed=None if seed is None else int(seed),
            n_jobs=int(n_jobs),
            refit=bool(refit),
        )


def _check_int(value, name: str, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ConfigError(f"{name} must be an integer, got {value!r}",
                          parameter=name, value=value)
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}",
                          parameter=name, value=value)


def _check_positive(value, name: str) -> None:
    if not isinstance(value, Real) or not np.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive number, got {value!r}",
                          parameter=name, value=value)
