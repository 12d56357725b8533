"""
Derivation of application indices and client identifiers.

There is no stored counter. The next index for an owner is recomputed from
the indices currently registered, so an index freed by a deletion is handed
out again before a higher one is.
"""

from typing import Iterable, Tuple


def next_index(existing: Iterable[int]) -> int:
    """Get the smallest non-negative integer not in ``existing``."""
    occupied = set(existing)
    index = 0
    while index in occupied:
        index += 1
    return index


def make_client_id(owner_id: str, index: int) -> str:
    """Build the client id for an owner's ``index``-th application."""
    if index < 0:
        raise ValueError(f'Index must be non-negative, got {index}')
    return f'{owner_id}-{index}'


def parse_client_id(client_id: str) -> Tuple[str, int]:
    """
    Split a client id into owner id and index.

    The split is on the last hyphen. An index never contains a hyphen, so
    each client id maps back to exactly one ``(owner_id, index)`` pair even
    when owner ids contain hyphens themselves.

    Raises
    ------
    ValueError
        If ``client_id`` does not end in ``-{non-negative integer}``.

    """
    owner_id, sep, suffix = client_id.rpartition('-')
    if not sep or not owner_id \
            or not (suffix.isascii() and suffix.isdigit()):
        raise ValueError(f'Not an application client id: {client_id}')
    return owner_id, int(suffix)
