"""
Fold assignment for cross-validation.

Fold ids are integers 1..K. Generated assignments permute a balanced
label vector with an explicit numpy Generator, so the same seed always
produces the same folds regardless of worker count.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import ConfigError, DimensionError

MIN_FOLDS = 3


def assign_folds(
    n: int,
    nfolds: int,
    rng: np.random.Generator,
    groups: NDArray | None = None,
) -> NDArray:
    """Randomly assign n rows to nfolds balanced folds.

    Args:
        n: Number of rows.
        nfolds: Number of folds K (3 <= K <= number of units).
        rng: Generator used for the permutation.
        groups: Optional (n,) subject labels; all rows of one subject land
            in the same fold (counting-process data with several intervals
            per subject).

    Returns:
        (n,) integer fold ids in 1..K.

    Raises:
        ConfigError: If K is out of range for the number of units.
    """
    if groups is None:
        n_units = n
        inverse = None
    else:
        groups = np.asarray(groups).ravel()
        if len(groups) != n:
            raise DimensionError(
                f"groups: expected {n} labels, got {len(groups)}"
            )
        _, inverse = np.unique(groups, return_inverse=True)
        n_units = int(inverse.max()) + 1

    if nfolds < MIN_FOLDS or nfolds > n_units:
        raise ConfigError(
            f"nfolds must be between {MIN_FOLDS} and the number of "
            f"{'subjects' if groups is not None else 'rows'} ({n_units}), "
            f"got {nfolds}",
            parameter='nfolds', value=nfolds,
        )

    labels = np.resize(np.arange(1, nfolds + 1), n_units)
    unit_folds = rng.permutation(labels)
    if inverse is None:
        return unit_folds
    return unit_folds[inverse]


def check_foldids(foldids: NDArray, n: int) -> NDArray:
    """Validate user-supplied fold ids and relabel them to 1..K."""
    foldids = np.asarray(foldids).ravel()
    if len(foldids) != n:
        raise DimensionError(
            f"foldids: expected {n} values to match y, got {len(foldids)}"
        )
    _, inverse = np.unique(foldids, return_inverse=True)
    relabeled = inverse.astype(np.int64) + 1
    if relabeled.max() < MIN_FOLDS:
        raise ConfigError(
            f"foldids must define at least {MIN_FOLDS} folds, "
            f"got {int(relabeled.max())}",
            parameter='foldids', value=foldids,
        )
    return relabeled
