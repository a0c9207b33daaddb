"""
Result envelope shared by path fits and cross-validation runs.

Each solver call wraps its payload (CoxnetParams, CVParams) in a Result
together with run metadata, the stage timings measured by
core.compute.timing.Timer and the warnings it emitted. Solution classes
read from the envelope and never modify it.
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable envelope around one solver payload.

    Attributes:
        params: Payload (coefficient path, CV table, ...)
        info: Run metadata (method, alpha, nfolds, devtype, seed, ...)
        timing: Seconds per stage plus 'total_seconds', or None when the
            payload was not produced by a timed solver call
        backend_name: Identifier of the execution strategy
        warnings: Messages emitted as warnings during the call

    Examples:
        >>> Result(
        ...     params=CoxnetParams(...),
        ...     info={'method': 'proximal gradient', 'alpha': 1.0},
        ...     timing={'total_seconds': 0.2, 'path': 0.19},
        ...     backend_name='cpu_proxgrad',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
