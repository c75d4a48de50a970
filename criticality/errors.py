"""
Errors raised by the criticality package.

ContractViolationError and its subclasses mean a producer or the driver broke
an invariant. They are fatal: callers abort the run instead of retrying.
The ValueError subclasses flag bad user input (keys, metric names, edge files).
"""


class ContractViolationError(Exception):
    """Base class for fatal invariant violations."""
    pass


class AbstractEdgeError(ContractViolationError):
    """Raised when a BaseEdge (abstract marker) is inserted into a graph."""
    pass


class EdgeTypeMismatchError(ContractViolationError):
    """Raised when two edges of different variants share one key."""

    def __init__(self, key, existing_type, incoming_type):
        self.key = key
        self.existing_type = existing_type
        self.incoming_type = incoming_type
        super().__init__(
            f"cannot add edges of different types under {key}: "
            f"existing={existing_type.value}, incoming={incoming_type.value}"
        )


class UnmergeableEdgeError(ContractViolationError):
    """Raised when no merge policy exists for a pair of edges."""
    pass


class MissingFragmentError(ContractViolationError):
    """Raised when a dependency fragment has not been published yet."""

    def __init__(self, unit: str, requested_by: str = ""):
        self.unit = unit
        self.requested_by = requested_by
        msg = f"no finalized fragment for {unit!r}"
        if requested_by:
            msg += f" (required by {requested_by!r})"
        super().__init__(msg)


class FrozenGraphError(ContractViolationError):
    """Raised when a published (frozen) fragment is mutated."""
    pass


class DuplicateFragmentError(ContractViolationError):
    """Raised when a unit publishes its fragment twice."""
    pass


class DependencyCycleError(ContractViolationError):
    """Raised when units cannot be put in dependency order."""
    pass


class UnsupportedEdgeError(ContractViolationError):
    """Raised when the centrality engine is fed a non-directed edge."""
    pass


class InvalidEdgeKeyError(ValueError):
    """Raised when an edge key string cannot be parsed."""
    pass


class UnsupportedMetricError(ValueError):
    """Raised for an unknown ranking metric name."""
    pass


class EdgeParseError(ValueError):
    """Raised when a raw edge line is malformed."""

    def __init__(self, line_number: int, line: str):
        self.line_number = line_number
        self.line = line
        super().__init__(f"line {line_number}: expected 2 or 3 fields, got {line!r}")
