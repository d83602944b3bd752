"""Claim checkers: queries for the set of currently claimed file paths.

A claim is a lock held on a file by some external worker. Changes to
claimed files are held back by the debouncer until the claim is released.
"""

from collections.abc import Callable, Iterable, Mapping, Set
from typing import Any

ClaimChecker = Callable[[], Set[str]]


def no_claims() -> frozenset[str]:
    """Claim checker for setups without a locking subsystem."""
    return frozenset()


def make_claim_checker(
    query_fn: Callable[[], Iterable[Mapping[str, Any]]],
    key: str = "file",
) -> ClaimChecker:
    """Build a claim checker from a function returning claim records.

    Args:
        query_fn: Returns the current claims, each a mapping holding the
            claimed path under ``key``.
        key: Mapping key that holds the claimed path.

    Returns:
        Zero-argument function returning the set of claimed paths.
    """

    def claimed_paths() -> frozenset[str]:
        return frozenset(claim[key] for claim in query_fn() if claim.get(key) is not None)

    return claimed_paths
