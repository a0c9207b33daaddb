"""
Task generation and dispatch for path fits, cross-validation and
permutation importance.

Work is described by small frozen task records produced by composable
generators (alphas, folds, per-alpha lambda sequences, covariate
columns) and run either in a plain loop or on a joblib thread pool.
Results always come back in task order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs
from numpy.typing import NDArray


@dataclass(frozen=True)
class PathTask:
    """Fit one regularization path at one alpha."""
    alpha_index: int
    alpha: float
    lambdas: NDArray


@dataclass(frozen=True)
class CVTask:
    """Fit one path on the training rows of one fold and score its test rows."""
    fold_index: int
    fold: int
    alpha_index: int
    alpha: float
    lambdas: NDArray


@dataclass(frozen=True)
class PermutationTask:
    """Permute one covariate column repeatedly with its own random stream."""
    column: int
    name: str
    seed: np.random.SeedSequence


def alpha_tasks(alphas: Sequence[float]) -> Iterator[tuple[int, float]]:
    for index, alpha in enumerate(alphas):
        yield index, float(alpha)


def fold_tasks(foldids: NDArray) -> Iterator[tuple[int, int]]:
    for index, fold in enumerate(np.unique(foldids)):
        yield index, int(fold)


def lambda_tasks(
    alphas: Sequence[float],
    lambda_grid: Sequence[NDArray],
) -> Iterator[PathTask]:
    """Pair every alpha with its own lambda sequence."""
    for index, alpha in alpha_tasks(alphas):
        yield PathTask(alpha_index=index, alpha=alpha, lambdas=lambda_grid[index])


def cv_tasks(
    foldids: NDArray,
    alphas: Sequence[float],
    lambda_grid: Sequence[NDArray],
) -> list[CVTask]:
    """Flat (fold, alpha) task list, fold-major."""
    return [
        CVTask(
            fold_index=fold_index,
            fold=fold,
            alpha_index=path.alpha_index,
            alpha=path.alpha,
            lambdas=path.lambdas,
        )
        for fold_index, fold in fold_tasks(foldids)
        for path in lambda_tasks(alphas, lambda_grid)
    ]


def permutation_tasks(
    names: Sequence[str],
    seed: int | None = None,
) -> list[PermutationTask]:
    """One task per column; the streams are spawned from a single seed."""
    streams = np.random.SeedSequence(seed).spawn(len(names))
    return [
        PermutationTask(column=column, name=name, seed=stream)
        for column, (name, stream) in enumerate(zip(names, streams))
    ]


def run_tasks(
    func: Callable,
    tasks: Sequence,
    n_jobs: int = 1,
    **kwargs,
) -> list:
    """Apply func(task, **kwargs) to every task, preserving task order.

    With a single effective worker the tasks run in a plain loop;
    otherwise they are dispatched to a joblib thread pool. The first
    exception raised by a worker propagates to the caller.
    """
    if effective_n_jobs(n_jobs) <= 1 or len(tasks) <= 1:
        return [func(task, **kwargs) for task in tasks]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(func)(task, **kwargs) for task in tasks
    )
