"""
Risk sets for the Cox partial likelihood.

For every distinct event time t the risk set R(t) holds the rows still
under observation: time >= t for right-censored data, start < t <= stop
for counting-process data. Sums over R(t) are computed for all event
times at once with reverse cumulative sums:

    sum_{i in R(t)} v_i = sum_{stop_i >= t} v_i - sum_{start_i >= t} v_i

The second term removes rows that have not yet entered the study at t
(start_i >= t implies stop_i > t, so they are counted by the first term).
That difference is exact for counts and weights but cancels badly for
exp(eta) when a late entry dominates, so sums of exponentials are taken
in log space instead (log_risk_sums): suffix log-sum-exp over the
stop-sorted rows for right-censored data, and for counting-process data
a decomposition of each row's event-time range start < t <= stop into
disjoint aligned blocks [s 2^j, (s + 1) 2^j), so every risk set is a
union of blocks and nothing is ever subtracted.
Tied event times are aggregated into one entry (Breslow).

A RiskSet is built once per (y, X, weights) and is read-only afterwards;
all lambda/alpha evaluations on the same data share it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.special import logsumexp

from pycoxnet.core.exceptions import DataError


@dataclass(frozen=True)
class RiskSet:
    """Risk-set bookkeeping for one data set.

    Attributes:
        event_times: (m,) distinct event times, ascending.
        n_events: (m,) weighted event count d_t at each time.
        at_risk_weight: (m,) total case weight at risk at each time.
        n_at_risk: (m,) number of rows at risk at each time.
        event_x_sums: (m, p) event-weighted covariate sums at each time.
        X: (n, p) covariates.
        event: (n,) event indicator (zero-weight events are ignored).
        weights: (n,) case weights.
        total_weight: sum of case weights; the solver averages the loss
            over it.
        event_rows: row indices of (positively weighted) events.
        event_time_index: index into event_times for each event row.
        stop_order, stop_first: sort order of stop and, per event time,
            the first sorted position with stop >= t.
        start_order, start_first: the same for start >= t, None for
            right-censored data.
        exit_index: (n,) number of event times <= stop_i.
        entry_index: (n,) number of event times <= start_i (zeros for
            right-censored data).
        log_weights: (n,) log case weights (-inf for zero weight).
        block_rows, block_cells: one entry per aligned block of a row's
            event-time range, the row and the block's cell in the flat
            level table. None for right-censored data.
        point_cells: (m, levels) cells of the blocks containing each
            event time, one per level. None for right-censored data.
        level_sizes: number of blocks at each level.
    """
    event_times: NDArray
    n_events: NDArray
    at_risk_weight: NDArray
    n_at_risk: NDArray
    event_x_sums: NDArray
    X: NDArray
    event: NDArray
    weights: NDArray
    total_weight: float
    event_rows: NDArray
    event_time_index: NDArray
    stop_order: NDArray
    stop_first: NDArray
    start_order: NDArray | None
    start_first: NDArray | None
    exit_index: NDArray
    entry_index: NDArray
    log_weights: NDArray | None = None
    block_rows: NDArray | None = None
    block_cells: NDArray | None = None
    point_cells: NDArray | None = None
    level_sizes: tuple[int, ...] = ()

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def n_times(self) -> int:
        """Number of distinct event times."""
        return len(self.event_times)

    @property
    def has_start(self) -> bool:
        return self.start_order is not None

    def risk_sums(self, values: NDArray) -> NDArray:
        """Sum per-row values over the risk set of every event time.

        Args:
            values: (n,) or (n, k) per-row values.

        Returns:
            (m,) or (m, k) risk-set sums.
        """
        values = np.asarray(values, dtype=np.float64)
        total = _reverse_cumsum(values[self.stop_order])[self.stop_first]
        if self.start_order is not None:
            entered_late = _reverse_cumsum(values[self.start_order])
            total = total - entered_late[self.start_first]
        return total

    def accumulate_over_rows(self, increments: NDArray) -> NDArray:
        """For each row, sum per-event-time increments over the times it is at risk.

        Returns (n,) with entry i equal to
        sum_{k: start_i < t_k <= stop_i} increments[k].
        """
        cumulative = np.concatenate([[0.0], np.cumsum(increments)])
        return cumulative[self.exit_index] - cumulative[self.entry_index]

    def log_risk_sums(self, log_values: NDArray) -> NDArray:
        """log sum_{i in R(t)} exp(log_values_i) for every event time.

        Only additions are performed, so the result keeps full relative
        precision whatever the spread of log_values across rows.

        Args:
            log_values: (n,) per-row log values (-inf allowed).

        Returns:
            (m,) log risk-set sums.
        """
        log_values = np.asarray(log_values, dtype=np.float64)
        if self.block_rows is None:
            ordered = log_values[self.stop_order][::-1]
            suffix = np.logaddexp.accumulate(ordered)[::-1]
            return suffix[self.stop_first]

        table = np.full(sum(self.level_sizes), -np.inf)
        np.logaddexp.at(table, self.block_cells, log_values[self.block_rows])
        return logsumexp(table[self.point_cells], axis=1)

    def log_accumulate_over_rows(self, log_increments: NDArray) -> NDArray:
        """Log-space accumulate_over_rows.

        Returns (n,) with entry i equal to
        log sum_{k: start_i < t_k <= stop_i} exp(log_increments[k]),
        -inf for rows at risk at no event time.
        """
        log_increments = np.asarray(log_increments, dtype=np.float64)
        out = np.full(self.n, -np.inf)
        if self.block_rows is None:
            prefix = np.logaddexp.accumulate(log_increments)
            seen = self.exit_index > 0
            out[seen] = prefix[self.exit_index[seen] - 1]
            return out

        table = np.empty(sum(self.level_sizes))
        level = log_increments
        offset = 0
        for size in self.level_sizes:
            table[offset:offset + size] = level
            offset += size
            if len(level) % 2 == 1:
                level = np.append(level, -np.inf)
            level = np.logaddexp(level[0::2], level[1::2])
        np.logaddexp.at(out, self.block_rows, table[self.block_cells])
        return out


def build_risk_set(
    stop: NDArray,
    event: NDArray,
    X: NDArray,
    *,
    start: NDArray | None = None,
    weights: NDArray | None = None,
) -> RiskSet:
    """Build the risk sets for (start, stop, event) or (time, event) data.

    Args:
        stop: (n,) event/censoring times.
        event: (n,) 0/1 event indicator.
        X: (n, p) covariates.
        start: (n,) entry times for counting-process data, or None.
        weights: (n,) case weights, default 1.

    Returns:
        RiskSet

    Raises:
        DataError: If any stop <= start, or if there is no event with
            positive weight.
    """
    stop = np.array(stop, dtype=np.float64)
    event = np.array(event, dtype=np.float64)
    X = np.array(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    n = len(stop)

    if weights is None:
        weights = np.ones(n, dtype=np.float64)
    else:
        weights = np.array(weights, dtype=np.float64)

    if start is not None:
        start = np.array(start, dtype=np.float64)
        bad = np.flatnonzero(stop <= start)
        if len(bad) > 0:
            raise DataError(
                f"stop must be greater than start, violated in {len(bad)} "
                f"rows (first: row {int(bad[0])})",
                rows=bad.tolist(),
            )

    is_event = (event == 1) & (weights > 0)
    if not np.any(is_event):
        raise DataError(
            "no events with positive weight, the partial likelihood is undefined"
        )
    event = np.where(is_event, 1.0, 0.0)

    event_rows = np.flatnonzero(is_event)
    event_times, event_time_index = np.unique(
        stop[event_rows], return_inverse=True
    )
    m = len(event_times)

    event_w = weights[event_rows]
    n_events = np.bincount(event_time_index, weights=event_w, minlength=m)
    event_x_sums = np.zeros((m, X.shape[1]), dtype=np.float64)
    np.add.at(event_x_sums, event_time_index, event_w[:, None] * X[event_rows])

    stop_order = np.argsort(stop, kind='mergesort')
    stop_first = np.searchsorted(stop[stop_order], event_times, side='left')
    exit_index = np.searchsorted(event_times, stop, side='right')

    if start is not None:
        start_order = np.argsort(start, kind='mergesort')
        start_first = np.searchsorted(start[start_order], event_times, side='left')
        entry_index = np.searchsorted(event_times, start, side='right')
    else:
        start_order = None
        start_first = None
        entry_index = np.zeros(n, dtype=np.intp)

    log_weights = np.full(n, -np.inf)
    positive = weights > 0
    log_weights[positive] = np.log(weights[positive])

    level_sizes = _level_sizes(m)
    if start is not None:
        block_rows, block_cells = _aligned_blocks(entry_index, exit_index, level_sizes)
        point_cells = _point_cells(m, level_sizes)
    else:
        block_rows = block_cells = point_cells = None

    risk = RiskSet(
        event_times=event_times,
        n_events=n_events,
        at_risk_weight=np.zeros(m),
        n_at_risk=np.zeros(m),
        event_x_sums=event_x_sums,
        X=X,
        event=event,
        weights=weights,
        total_weight=float(np.sum(weights)),
        event_rows=event_rows,
        event_time_index=event_time_index,
        stop_order=stop_order,
        stop_first=stop_first,
        start_order=start_order,
        start_first=start_first,
        exit_index=exit_index,
        entry_index=entry_index,
        log_weights=log_weights,
        block_rows=block_rows,
        block_cells=block_cells,
        point_cells=point_cells,
        level_sizes=level_sizes,
    )

    # Counts need the sort bookkeeping above, so fill them in afterwards.
    at_risk_weight = risk.risk_sums(weights)
    n_at_risk = np.rint(risk.risk_sums(np.ones(n))).astype(np.int64)
    object.__setattr__(risk, 'at_risk_weight', at_risk_weight)
    object.__setattr__(risk, 'n_at_risk', n_at_risk)

    for arr in (
        event_times, n_events, at_risk_weight, n_at_risk, event_x_sums, X,
        event, weights, event_rows, event_time_index, stop_order,
        stop_first, exit_index, entry_index, start_order, start_first,
        log_weights, block_rows, block_cells, point_cells,
    ):
        if arr is not None:
            arr.setflags(write=False)

    return risk


def risk_set_for(design, X: NDArray | None = None) -> RiskSet:
    """Build the risk set of a SurvivalDesign, optionally with a transformed X."""
    return build_risk_set(
        design.stop,
        design.event,
        design.X if X is None else X,
        start=design.start,
        weights=design.weights,
    )


def _reverse_cumsum(sorted_values: NDArray) -> NDArray:
    """Reverse cumulative sum along axis 0, padded with a trailing zero row.

    out[j] = sum_{l >= j} sorted_values[l]; out[n] = 0.
    """
    pad = np.zeros((1,) + sorted_values.shape[1:], dtype=np.float64)
    padded = np.concatenate([sorted_values, pad], axis=0)
    return np.cumsum(padded[::-1], axis=0)[::-1]


def _level_sizes(m: int) -> tuple[int, ...]:
    """Number of aligned blocks of length 2^j over m event times, per level j."""
    sizes = [m]
    while sizes[-1] > 1:
        sizes.append((sizes[-1] + 1) // 2)
    return tuple(sizes)


def _aligned_blocks(
    lo: NDArray,
    hi: NDArray,
    level_sizes: tuple[int, ...],
) -> tuple[NDArray, NDArray]:
    """Split each range [lo_i, hi_i) into disjoint aligned blocks.

    A block at level j and position s covers [s 2^j, (s + 1) 2^j); each
    range needs at most two blocks per level.

    Returns:
        (rows, cells): the row of every block and its cell in the flat
        table that stacks the levels one after another.
    """
    offsets = np.concatenate([[0], np.cumsum(level_sizes)[:-1]])
    row_ids = np.arange(len(lo))
    lo = np.array(lo, dtype=np.int64)
    hi = np.array(hi, dtype=np.int64)
    rows, cells = [], []

    level = 0
    active = lo < hi
    while np.any(active):
        left = active & (lo % 2 == 1)
        rows.append(row_ids[left])
        cells.append(offsets[level] + lo[left])
        lo = lo + left

        right = active & (hi % 2 == 1) & (lo < hi)
        hi = hi - right
        rows.append(row_ids[right])
        cells.append(offsets[level] + hi[right])

        lo //= 2
        hi //= 2
        level += 1
        active = lo < hi

    if not rows:
        return np.zeros(0, dtype=np.intp), np.zeros(0, dtype=np.intp)
    return np.concatenate(rows), np.concatenate(cells).astype(np.intp)


def _point_cells(m: int, level_sizes: tuple[int, ...]) -> NDArray:
    """(m, levels) cells of the blocks that contain each event time."""
    offsets = np.concatenate([[0], np.cumsum(level_sizes)[:-1]])
    k = np.arange(m)[:, None]
    shifts = np.arange(len(level_sizes))[None, :]
    return (offsets[None, :] + (k >> shifts)).astype(np.intp)
