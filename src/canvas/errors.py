"""Component tree errors.

Store operations return these inside ``Failure`` rather than raising them.
"""


class TreeError(Exception):
    """Base class for component tree failures."""


class NodeNotFoundError(TreeError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Component not found: {node_id}")
        self.node_id = node_id


class DuplicateNodeError(TreeError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Duplicate component id: {node_id}")
        self.node_id = node_id


class LockedNodeError(TreeError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Component is locked: {node_id}")
        self.node_id = node_id


class InvalidEditError(TreeError):
    """An edit that would leave the tree malformed (bad parent, bad field)."""


class GenerationPayloadError(TreeError):
    """The generation provider reply cannot be turned into components."""


class SnapshotFormatError(TreeError):
    """A serialized document does not match the snapshot layout."""
