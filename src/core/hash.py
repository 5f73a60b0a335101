"""Fast non-cryptographic hashing for cache keys and content fingerprints."""

import xxhash


def hash_string(text: str, truncate: int | None = None) -> str:
    """
    Hash string to an xxhash64 hex digest.

    Args:
        text: String to hash
        truncate: Optional length to truncate digest (e.g. 16 for cache keys)
    """
    digest = xxhash.xxh64(text.encode("utf-8")).hexdigest()
    return digest[:truncate] if truncate else digest


def hash_fields(*fields: str) -> str:
    """
    Hash multiple fields together (deterministic).

    Examples:
        >>> hash_fields("react", "<div />")
        '5c1f...'
    """
    return hash_string("\x00".join(fields))


__all__ = ["hash_string", "hash_fields"]
