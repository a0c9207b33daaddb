"""
Penalized Cox regression.

Public API:
    coxnet(y, X, ...) -> CoxnetSolution
    coxnet_paths(y, X, alphas=...) -> tuple[CoxnetSolution, ...]
    cv_coxnet(y, X, ...) -> CVSolution
    lambda_max(y, X, ...) -> float
    baseline_hazard(solution) -> BaselineHazard
    predict(solution, X, type=...) -> NDArray
    predict_survival(solution, X, times) -> NDArray
    predict_risk(solution, X, times) -> NDArray
    concordance(y, risk) -> float
    coefficient_importance(solution) -> dict
    permutation_importance(solution, X, y, ...) -> dict
"""

from pycoxnet.survival.design import SurvivalDesign
from pycoxnet.survival.config import CoxnetConfig, CVConfig
from pycoxnet.survival.solution import CoxnetSolution, CVSolution
from pycoxnet.survival.solvers import coxnet, coxnet_paths, cv_coxnet, lambda_max
from pycoxnet.survival._posthoc import (
    BaselineHazard,
    baseline_hazard,
    coefficient_importance,
    concordance,
    permutation_importance,
    predict,
    predict_risk,
    predict_survival,
)

__all__ = [
    "SurvivalDesign",
    "CoxnetConfig",
    "CVConfig",
    "CoxnetSolution",
    "CVSolution",
    "coxnet",
    "coxnet_paths",
    "cv_coxnet",
    "lambda_max",
    "BaselineHazard",
    "baseline_hazard",
    "coefficient_importance",
    "concordance",
    "permutation_importance",
    "predict",
    "predict_risk",
    "predict_survival",
]
