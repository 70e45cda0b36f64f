"""Error contracts for flattening and decoding.

Both exceptions subclass ValueError: they describe input the system refuses
to interpret, not internal failures. Neither is ever caught inside the core.
"""

from typing import TypedDict


class FlattenErrorPayload(TypedDict):
    """Schema for structured flatten failure payloads.

    Used by callers that report a failed request without the traceback.
    """

    exception: str  # String representation of the exception
    type: str  # Exception class name
    aggregation_type: str  # Backend type name of the offending node
    aggregation_name: str  # Name of the offending node


class UnsupportedAggregationTypeError(ValueError):
    """Raised when a node's variant is not one the flattener handles.

    Fatal for the whole flatten call: no partial rows are returned and the
    caller must treat the request as failed.

    Attributes:
        type_name: Declared backend type of the node (e.g., "terms")
        aggregation_name: Name of the node within its siblings
    """

    def __init__(self, type_name: str, aggregation_name: str) -> None:
        self.type_name = type_name
        self.aggregation_name = aggregation_name
        super().__init__(f"unsupported aggregation type {type_name}")

    def to_payload(self) -> FlattenErrorPayload:
        """Render the error as a structured payload."""
        return FlattenErrorPayload(
            exception=str(self),
            type=type(self).__name__,
            aggregation_type=self.type_name,
            aggregation_name=self.aggregation_name,
        )


class AggregationDecodeError(ValueError):
    """Raised when a response body does not have the typed-key shape.

    Attributes:
        path: Dotted JSON path of the offending member
        reason: Human-readable description of the problem
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
