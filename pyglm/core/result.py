"""
Generic result container for pyglm computations.

Every analysis returns its domain payload inside a Result envelope so that
timing, provenance and non-fatal warnings travel with the numbers.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (ss type, ginverse method, rank)
    - timing is optional (don't burden unit tests)
    - warnings carry per-term failures and data-quality notes
    - Immutable (frozen=True) so per-term work can share it across threads
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for GLM computations.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific payload (tables, estimates, matrices)
        info: Structured metadata (ss_type, ginverse, rank, dependent)
        timing: Execution timing breakdown, or None if not measured
        method: Identifier of the computation that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=GLMParams(...),
        ...     info={'ss_type': 3, 'ginverse': 'pinv', 'rank': 6},
        ...     timing={'total_seconds': 0.01},
        ...     method='glm_univariate',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    method: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
