"""
Solution wrappers for penalized Cox results.

Each Solution wraps a Result[Params] and exposes user-friendly properties
with R-style summary() methods.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import ConfigError
from pycoxnet.core.result import Result
from pycoxnet.survival._common import CoxnetParams, CVParams


class CoxnetSolution:
    """Elastic-net Cox regularization path at one alpha.

    Properties mirror glmnet's coxnet fit.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[CoxnetParams]) -> None:
        self._result = _result

    @property
    def alpha(self) -> float:
        return self._result.params.alpha

    @property
    def lambdas(self):
        """Penalty strengths, largest first."""
        return self._result.params.lambdas

    @property
    def lambda_max(self) -> float:
        return self._result.params.lambda_max

    @property
    def path(self):
        """(k, p) coefficients, one row per lambda."""
        return self._result.params.coefficients

    @property
    def coefficients(self) -> dict[str, float]:
        """Coefficients at the smallest lambda, by feature name."""
        return dict(zip(self.feature_names, self.coef().tolist()))

    @property
    def n_iter(self):
        return self._result.params.n_iter

    @property
    def converged(self):
        return self._result.params.converged

    @property
    def objective(self):
        return self._result.params.objective

    @property
    def kkt_violations(self):
        return self._result.params.kkt_violations

    @property
    def n_nonzero(self):
        return self._result.params.n_nonzero

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self._result.params.feature_names

    @property
    def means(self):
        """Weighted covariate means used to center predictions."""
        return self._result.params.means

    @property
    def design(self):
        return self._result.params.design

    @property
    def n_observations(self) -> int:
        return self._result.params.n_observations

    @property
    def n_events(self) -> int:
        return self._result.params.n_events

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    def lambda_index(self, lam: float | None = None) -> int:
        """Index of the path entry nearest lam (default: the last one)."""
        if lam is None:
            return len(self.lambdas) - 1
        return int(np.argmin(np.abs(self.lambdas - lam)))

    def coef(self, lam: float | None = None) -> NDArray:
        """(p,) coefficients at the path entry nearest lam."""
        return self.path[self.lambda_index(lam)]

    def summary(self) -> str:
        """R-style summary of the path."""
        lines = []
        lines.append("Call: coxnet()")
        lines.append("")
        lines.append(
            f"  n= {self.n_observations}, "
            f"number of events= {self.n_events}, "
            f"alpha= {self.alpha:g}"
        )
        lines.append("")

        lines.append(
            f"  {'lambda':>12s}  {'df':>4s}  {'iter':>6s}  {'converged':>9s}"
        )
        k = len(self.lambdas)
        show = min(k, 20)
        for i in range(show):
            lines.append(
                f"  {self.lambdas[i]:12.6g}  {self.n_nonzero[i]:4d}  "
                f"{self.n_iter[i]:6d}  {str(bool(self.converged[i])):>9s}"
            )
        if k > 20:
            lines.append(f"  ... ({k - 20} more lambdas)")

        lines.append("")
        lines.append(f"  Coefficients at lambda= {self.lambdas[-1]:.6g}:")
        for name, value in self.coefficients.items():
            shown = f"{value:12.6f}" if value != 0 else f"{'.':>12s}"
            lines.append(f"  {name:>12s}  {shown}")

        for message in self.warnings:
            lines.append("")
            lines.append(f"  Warning: {message}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CoxnetSolution(alpha={self.alpha:g}, "
            f"lambdas={len(self.lambdas)}, "
            f"nonzero={int(self.n_nonzero[-1])})"
        )


class CVSolution:
    """Cross-validated elastic-net Cox model.

    Properties mirror glmnet's cv.glmnet output.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[CVParams]) -> None:
        self._result = _result

    @property
    def alphas(self):
        return self._result.params.alphas

    @property
    def lambdas(self):
        """(a, k) lambda sequence of each alpha."""
        return self._result.params.lambdas

    @property
    def cvm(self):
        """(a, k) mean held-out deviance."""
        return self._result.params.cvm

    @property
    def cvse(self):
        return self._result.params.cvse

    @property
    def cvlo(self):
        return self._result.params.cvlo

    @property
    def cvup(self):
        return self._result.params.cvup

    @property
    def fold_deviance(self):
        """(K, a, k) raw per-fold deviance."""
        return self._result.params.fold_deviance

    @property
    def foldids(self):
        """Fold of each row, 1..K."""
        return self._result.params.foldids

    @property
    def nfolds(self) -> int:
        return self._result.params.nfolds

    @property
    def devtype(self) -> str:
        return self._result.params.devtype

    @property
    def alpha_optimal(self) -> float:
        return self._result.params.alpha_optimal

    @property
    def lambda_min(self) -> float:
        return self._result.params.lambda_min

    @property
    def lambda_1se(self) -> float:
        return self._result.params.lambda_1se

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    @property
    def fit(self) -> CoxnetSolution | None:
        """Full-data path at alpha_optimal (refit=True only)."""
        refit = self._result.params.refit
        if refit is None:
            return None
        return CoxnetSolution(Result(
            params=refit,
            info={'refit': True},
            timing=None,
            backend_name=self.backend_name,
        ))

    # -- Delegation used by the post-hoc functions --

    @property
    def design(self):
        return self._require_fit().design

    @property
    def means(self):
        return self._require_fit().means

    def coef(self, lam: float | None = None) -> NDArray:
        """(p,) refit coefficients at lam (default lambda_min)."""
        return self._require_fit().coef(self.lambda_min if lam is None else lam)

    @property
    def coefficients(self) -> dict[str, float]:
        """Refit coefficients at lambda_min, by feature name."""
        fit = self._require_fit()
        return dict(zip(fit.feature_names, self.coef().tolist()))

    def _require_fit(self) -> CoxnetSolution:
        fit = self.fit
        if fit is None:
            raise ConfigError(
                "coefficients need the full-data path, call cv_coxnet(..., refit=True)",
                parameter='refit', value=False,
            )
        return fit

    def summary(self) -> str:
        """R-style summary of the cross-validation."""
        params = self._result.params
        lines = []
        lines.append("Call: cv_coxnet()")
        lines.append("")
        lines.append(
            f"  {self.nfolds}-fold cross-validation, deviance type= {self.devtype}"
        )
        lines.append("")

        lines.append(
            f"  {'alpha':>8s}  {'lambda':>12s}  {'cvm':>12s}  {'cvse':>10s}"
        )
        for label, index in (("min", params.lambda_min_index),
                             ("1se", params.lambda_1se_index)):
            a = params.alpha_index
            lines.append(
                f"  {self.alpha_optimal:8.4g}  {self.lambdas[a, index]:12.6g}  "
                f"{self.cvm[a, index]:12.4f}  {self.cvse[a, index]:10.4f}  ({label})"
            )

        if params.refit is not None:
            lines.append("")
            lines.append(f"  Coefficients at lambda.min= {self.lambda_min:.6g}:")
            for name, value in self.coefficients.items():
                shown = f"{value:12.6f}" if value != 0 else f"{'.':>12s}"
                lines.append(f"  {name:>12s}  {shown}")

        for message in self.warnings:
            lines.append("")
            lines.append(f"  Warning: {message}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CVSolution(alpha={self.alpha_optimal:g}, "
            f"lambda_min={self.lambda_min:.6g}, "
            f"lambda_1se={self.lambda_1se:.6g})"
        )
