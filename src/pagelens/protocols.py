"""
Core contracts and data structures for pagelens.

This module defines the shapes that flow between the external gathering
collaborator, the computed-artifact graph, the audit runner and the score
aggregator:

- gather modes and score display modes
- the read-only artifact store handed to audits
- the raw product an audit function returns
- the call signatures audits and computed artifacts must implement
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Optional, Protocol, Union

if TYPE_CHECKING:
    from pagelens.computed.artifact import ComputedContext

# ============================================================================
# Enums and Constants
# ============================================================================


class GatherMode(Enum):
    """How the raw artifacts were gathered."""

    NAVIGATION = "navigation"
    TIMESPAN = "timespan"
    SNAPSHOT = "snapshot"


class ScoreDisplayMode(Enum):
    """How an audit result is scored and displayed."""

    BINARY = "binary"
    NUMERIC = "numeric"
    INFORMATIVE = "informative"
    MANUAL = "manual"
    NOT_APPLICABLE = "notApplicable"
    ERROR = "error"

    @property
    def is_scored(self) -> bool:
        return self in (ScoreDisplayMode.BINARY, ScoreDisplayMode.NUMERIC)


class AuditState(Enum):
    """Lifecycle of a single audit within one run."""

    PENDING = "pending"
    SCORED = "scored"
    NOT_APPLICABLE = "notApplicable"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not AuditState.PENDING


ALL_GATHER_MODES: tuple[GatherMode, ...] = tuple(GatherMode)

# Scores at or above this value count as passing.
PASS_THRESHOLD = 0.9

# ============================================================================
# Core Dataclasses
# ============================================================================


@dataclass(frozen=True)
class GatherContext:
    """Describes how the raw artifacts were produced."""

    gather_mode: GatherMode = GatherMode.NAVIGATION
    settings: Dict[str, Any] = field(default_factory=dict)
    requested_url: str = ""
    final_url: str = ""
    fetch_time: str = ""


class Artifacts(Mapping[str, Any]):
    """
    Read-only store of the raw artifacts gathered for one run.

    A value may be an ``Exception`` instance when its gatherer failed without
    aborting the run; audits requiring such an artifact report an error.
    """

    def __init__(self, values: Mapping[str, Any], gather_mode: GatherMode = GatherMode.NAVIGATION) -> None:
        self._values: Dict[str, Any] = dict(values)
        self.gather_mode = gather_mode

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Artifacts({sorted(self._values)!r}, gather_mode={self.gather_mode.value!r})"

    def failed(self, name: str) -> Optional[BaseException]:
        """Return the gatherer error stored under ``name``, if any."""
        value = self._values.get(name)
        return value if isinstance(value, BaseException) else None


@dataclass
class AuditProduct:
    """Raw result returned by an audit function before normalization."""

    score: Union[float, bool, None] = None
    numeric_value: Optional[float] = None
    numeric_unit: Optional[str] = None
    display_value: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    not_applicable: bool = False
    error_message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AuditProduct:
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise TypeError(f"Unknown audit product fields: {sorted(unknown)}")
        return cls(**dict(data))


@dataclass
class AuditContext:
    """Everything an audit may use besides the raw artifacts."""

    options: Dict[str, Any]
    settings: Dict[str, Any]
    computed: ComputedContext
    run_warnings: List[str] = field(default_factory=list)


# ============================================================================
# Protocol Definitions
# ============================================================================


class AuditFunction(Protocol):
    """Signature every audit implementation follows. May be sync or async."""

    def __call__(
        self, artifacts: Artifacts, context: AuditContext
    ) -> Union[AuditProduct, Mapping[str, Any], Awaitable[Union[AuditProduct, Mapping[str, Any]]]]:
        ...


class ComputeFunction(Protocol):
    """Signature of a computed-artifact derivation. May be sync or async."""

    def __call__(self, data: Any, context: ComputedContext) -> Any:
        ...
