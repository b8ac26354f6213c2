"""ULID generation for booking, bank account and withdrawal ids."""

import ulid


def generate_ulid() -> str:
    """Generate a new ULID string. Lexicographic order follows creation time."""
    return str(ulid.ULID())
