"""
SurvivalDesign: immutable container for penalized Cox input data.

Wraps a right-censored (time, event) or counting-process
(start, stop, event) response, the covariate matrix, case weights and
predictor names. Validates inputs at construction time — all downstream
code trusts clean data.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pycoxnet.core.exceptions import DataError, DimensionError
from pycoxnet.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_consistent_length,
    check_finite,
    check_min_samples,
)


@dataclass(frozen=True)
class SurvivalDesign:
    """Immutable penalized Cox data container.

    Parameters
    ----------
    start : NDArray or None
        (n,) interval entry times for counting-process data, None for
        right-censored data.
    stop : NDArray
        (n,) event or censoring times (interval exit times).
    event : NDArray
        (n,) event indicator: 1 = event observed, 0 = censored.
    X : NDArray
        (n, p) covariate matrix, no intercept column.
    weights : NDArray
        (n,) non-negative case weights.
    feature_names : tuple of str
        One name per column of X.
    """

    start: NDArray | None
    stop: NDArray
    event: NDArray
    X: NDArray
    weights: NDArray
    feature_names: tuple[str, ...]

    @classmethod
    def for_survival(
        cls,
        y,
        X,
        *,
        weights=None,
        feature_names=None,
    ) -> SurvivalDesign:
        """Create and validate penalized Cox data.

        Parameters
        ----------
        y : array-like
            Response matrix with 2 columns (time, event) or 3 columns
            (start, stop, event).
        X : array-like
            Covariate matrix (n, p). A 1D array is treated as one column.
        weights : array-like or None
            Optional non-negative case weights (default 1).
        feature_names : sequence of str or None
            Column names for X. Defaults to x0, x1, ...

        Returns
        -------
        SurvivalDesign

        Raises
        ------
        DataError
            If the response is malformed, the intervals are invalid or
            there are no events.
        DimensionError
            If shapes are inconsistent.
        """
        y_arr = check_array(y, 'y')
        check_2d(y_arr, 'y')
        if y_arr.shape[1] not in (2, 3):
            raise DimensionError(
                f"y: expected 2 columns (time, event) or 3 columns "
                f"(start, stop, event), got {y_arr.shape[1]}"
            )
        check_min_samples(y_arr, 1, 'y')
        check_finite(y_arr, 'y')

        X_arr = check_array(X, 'X')
        if X_arr.ndim == 1:
            X_arr = X_arr.reshape(-1, 1)
        check_2d(X_arr, 'X')
        check_finite(X_arr, 'X')
        if X_arr.shape[1] == 0:
            raise DimensionError("X: must have at least one column")
        check_consistent_length(y_arr, X_arr, names=('y', 'X'))

        n = y_arr.shape[0]

        if y_arr.shape[1] == 3:
            start = y_arr[:, 0].copy()
            stop = y_arr[:, 1].copy()
        else:
            start = None
            stop = y_arr[:, 0].copy()
        event = y_arr[:, -1].copy()

        if np.any(stop < 0) or (start is not None and np.any(start < 0)):
            raise DataError("y: times must be non-negative")

        unique_events = np.unique(event)
        if not np.all(np.isin(unique_events, [0.0, 1.0])):
            raise DataError(
                f"y: event must contain only 0 and 1, "
                f"got unique values: {unique_events}"
            )

        if start is not None:
            bad = np.flatnonzero(stop <= start)
            if len(bad) > 0:
                raise DataError(
                    f"y: stop must be greater than start, violated in "
                    f"{len(bad)} rows (first: row {int(bad[0])})",
                    rows=bad.tolist(),
                )

        if weights is None:
            w = np.ones(n, dtype=np.float64)
        else:
            w = check_array(weights, 'weights')
            check_1d(w, 'weights')
            check_finite(w, 'weights')
            check_consistent_length(w, y_arr, names=('weights', 'y'))
            if np.any(w < 0):
                raise DataError("weights: must be non-negative")
            w = w.copy()

        if not np.any((event == 1) & (w > 0)):
            raise DataError(
                "y: no events with positive weight, the partial likelihood "
                "is undefined"
            )

        p = X_arr.shape[1]
        if feature_names is None:
            names = tuple(f"x{j}" for j in range(p))
        else:
            names = tuple(str(name) for name in feature_names)
            if len(names) != p:
                raise DimensionError(
                    f"feature_names: expected {p} names to match X, "
                    f"got {len(names)}"
                )

        return cls(
            start=start,
            stop=stop,
            event=event,
            X=X_arr,
            weights=w,
            feature_names=names,
        )

    @property
    def n(self) -> int:
        """Number of observation rows (intervals)."""
        return len(self.stop)

    @property
    def p(self) -> int:
        """Number of covariates."""
        return self.X.shape[1]

    @property
    def n_events(self) -> int:
        """Number of observed events."""
        return int(np.sum(self.event))

    @property
    def has_start(self) -> bool:
        """True for counting-process (start, stop, event) data."""
        return self.start is not None

    @property
    def y(self) -> NDArray:
        """Response matrix in the layout it was supplied."""
        if self.start is None:
            return np.column_stack([self.stop, self.event])
        return np.column_stack([self.start, self.stop, self.event])

    def subset(self, rows: NDArray) -> SurvivalDesign:
        """Restrict to a boolean mask or index array of rows.

        The result is not revalidated for events; callers that need a
        fittable subset check ``n_events`` themselves.
        """
        return SurvivalDesign(
            start=None if self.start is None else self.start[rows],
            stop=self.stop[rows],
            event=self.event[rows],
            X=self.X[rows],
            weights=self.weights[rows],
            feature_names=self.feature_names,
        )

    def column_means(self) -> NDArray:
        """Weighted covariate means (used to center predictions)."""
        return np.average(self.X, axis=0, weights=self.weights)

    def column_scales(self) -> NDArray:
        """Weighted population standard deviations, 1 for constant columns."""
        means = self.column_means()
        var = np.average((self.X - means) ** 2, axis=0, weights=self.weights)
        scales = np.sqrt(var)
        scales[scales <= 0] = 1.0
        return scales
