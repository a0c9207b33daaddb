"""
Wall-clock timing of the stages of a fit.

A Timer wraps one solver call; the stages run inside it (lambda grid,
path sweep, cross-validation) are timed separately and end up in the
``timing`` dict of the returned solution.
"""

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Stage timer for one solver call.

    Usage:
        with Timer() as timer:
            with timer.stage('lambda_grid'):
                lambdas = design_lambdas(design, config, alpha)
            with timer.stage('path'):
                params = fit_coxnet_params(design, config, alpha)

        timer.result()
        # {'total_seconds': 0.05, 'lambda_grid': 0.001, 'path': 0.049}

    A stage entered more than once accumulates its time.
    """

    def __init__(self):
        self._stages: dict[str, float] = {}
        self._started: float | None = None
        self._total: float | None = None

    def __enter__(self) -> 'Timer':
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._total = time.perf_counter() - self._started

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block under ``name``."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self._stages[name] = (
                self._stages.get(name, 0.0) + time.perf_counter() - started
            )

    def result(self) -> dict[str, float]:
        """
        Total and per-stage seconds.

        Raises:
            RuntimeError: If the timed block has not finished yet.
        """
        if self._total is None:
            raise RuntimeError("Timer.result() called before the timed block finished")
        return {'total_seconds': self._total, **self._stages}
