"""
Parameter payloads for penalized Cox results.

Each dataclass is a frozen payload carried inside a Result[P] envelope.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pycoxnet.survival.design import SurvivalDesign


@dataclass(frozen=True)
class CoxnetParams:
    """Elastic-net Cox regularization path at one alpha.

    Coefficients are on the scale of the supplied X, whether or not the
    fit was standardized internally.
    """

    alpha: float
    lambdas: NDArray             # (k,) penalty strengths, largest first
    coefficients: NDArray        # (k, p) one row per lambda
    n_iter: NDArray              # (k,) iterations per lambda
    converged: NDArray           # (k,) bool
    objective: NDArray           # (k,) penalized objective (fitting scale)
    kkt_violations: NDArray      # (k,) coordinates failing the KKT audit
    lambda_max: float            # smallest lambda with an all-zero solution
    feature_names: tuple[str, ...]
    means: NDArray               # (p,) weighted column means of X
    standardize: bool
    design: SurvivalDesign       # training data, used for post-hoc predictions

    @property
    def n_nonzero(self) -> NDArray:
        return np.count_nonzero(self.coefficients, axis=1)

    @property
    def n_observations(self) -> int:
        return self.design.n

    @property
    def n_events(self) -> int:
        return self.design.n_events


@dataclass(frozen=True)
class CVParams:
    """Cross-validated deviance over an (alpha, lambda) grid.

    Grid axes are (alpha, lambda); fold_deviance adds a leading fold axis.
    """

    alphas: NDArray              # (a,)
    lambdas: NDArray             # (a, k) lambda sequence of each alpha
    cvm: NDArray                 # (a, k) mean held-out deviance
    cvse: NDArray                # (a, k) standard error across folds
    cvlo: NDArray                # (a, k) cvm - cvse
    cvup: NDArray                # (a, k) cvm + cvse
    fold_deviance: NDArray       # (K, a, k) raw per-fold deviance
    fold_failures: NDArray       # (K, a) non-converged lambdas per fold fit
    foldids: NDArray             # (n,) fold of each row, 1..K
    nfolds: int
    devtype: str
    alpha_index: int             # row of the selected alpha
    lambda_min_index: int
    lambda_1se_index: int
    alpha_optimal: float
    lambda_min: float
    lambda_1se: float
    refit: CoxnetParams | None   # full-data path at alpha_optimal
