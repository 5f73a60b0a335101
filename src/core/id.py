"""ID Generation.

ULID-based identifiers for documents, snapshots and sandbox requests.

- Sortable: ULIDs order by creation time
- Typed: NewType wrappers per ID category
- Prefixed: cmp_*, ver_*, req_* keep logs readable
"""

from datetime import datetime
from typing import NewType

from ulid import ULID

ComponentID = NewType("ComponentID", str)
"""Component node identifier"""

VersionID = NewType("VersionID", str)
"""Saved version identifier"""

RequestID = NewType("RequestID", str)
"""Sandbox render request (correlation) identifier"""

ContextID = NewType("ContextID", str)
"""Isolated context handle identifier"""

HistoryID = NewType("HistoryID", str)
"""Generation history entry identifier"""


class Prefix:
    """ID prefix constants."""

    COMPONENT = "cmp"
    VERSION = "ver"
    REQUEST = "req"
    CONTEXT = "ctx"
    HISTORY = "hist"


def generate_raw() -> str:
    """Generate ULID without prefix."""
    return str(ULID())


def generate_prefixed(prefix: str) -> str:
    """Generate ULID with type prefix."""
    return f"{prefix}_{generate_raw()}"


def new_component_id() -> ComponentID:
    return ComponentID(generate_prefixed(Prefix.COMPONENT))


def new_version_id() -> VersionID:
    return VersionID(generate_prefixed(Prefix.VERSION))


def new_request_id() -> RequestID:
    return RequestID(generate_prefixed(Prefix.REQUEST))


def new_context_id() -> ContextID:
    return ContextID(generate_prefixed(Prefix.CONTEXT))


def new_history_id() -> HistoryID:
    return HistoryID(generate_prefixed(Prefix.HISTORY))


def _ulid_part(id_str: str) -> str:
    return id_str.rsplit("_", 1)[1] if "_" in id_str else id_str


def is_valid(id_str: str) -> bool:
    """Check if string is a (optionally prefixed) ULID."""
    ulid_part = _ulid_part(id_str)
    if len(ulid_part) != 26:
        return False
    try:
        ULID.from_str(ulid_part)
        return True
    except ValueError:
        return False


def extract_prefix(id_str: str) -> str | None:
    """Extract prefix from prefixed ID, None if unprefixed."""
    parts = id_str.rsplit("_", 1)
    return parts[0] if len(parts) == 2 else None


def extract_timestamp(id_str: str) -> datetime | None:
    """Extract creation time from ULID, None if invalid."""
    if not is_valid(id_str):
        return None
    return ULID.from_str(_ulid_part(id_str)).datetime
