"""
Error taxonomy for the story map engine.

Every error is locally recoverable: the operation that raised it was rejected
before the graph was touched. EditorSession catches StoryMapError and surfaces
user-facing ones through its on_error callback.
"""

from typing import Any, Optional


class StoryMapError(Exception):
    """Base error with the name of the operation that was rejected."""
    def __init__(self, message: str, operation: str = ""):
        self.operation = operation
        super().__init__(message)


class SelfConnectionError(StoryMapError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__("A node cannot be connected to itself.", "create_connection")


class TooManyConnectionsError(StoryMapError):
    def __init__(self, start_node_id: str, end_node_id: str, limit: int):
        self.start_node_id = start_node_id
        self.end_node_id = end_node_id
        self.limit = limit
        super().__init__(
            f"Maximum of {limit} connections between two nodes allowed.",
            "create_connection",
        )


class NameConflictError(StoryMapError):
    def __init__(self, name: str):
        self.name = name
        super().__init__("A node with this name already exists.", "rename_node")


class ValidationError(StoryMapError):
    """Raised when an imported document does not have the expected shape."""
    def __init__(self, message: str):
        super().__init__(message, "import")


class MalformedReferenceError(StoryMapError):
    """A serialized connection points at a node that is not in the document."""
    def __init__(self, reference: Any, field: str, index: Optional[int] = None):
        self.reference = reference
        self.field = field
        self.index = index
        where = f"connection #{index}" if index is not None else "connection"
        super().__init__(f"{where}: {field}={reference!r} does not resolve to a node", "deserialize")
