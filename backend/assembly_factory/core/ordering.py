"""
Sort-order helpers
Every structural change to a composition ends in densify(), which keeps
sort orders at exactly 0..n-1 in list order.
"""

from typing import Any, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def is_permutation(current_ids: Sequence[str], requested_ids: Sequence[str]) -> bool:
    """True when requested_ids is a reordering of current_ids (no foreign, missing or repeated ids)."""
    if len(current_ids) != len(requested_ids):
        return False
    if len(set(requested_ids)) != len(requested_ids):
        return False
    return set(current_ids) == set(requested_ids)


def densify(items: List[T], set_order: Optional[Callable[[T, int], Any]] = None) -> List[T]:
    """Assign sort_order = list index to every item."""
    for index, item in enumerate(items):
        if set_order is not None:
            set_order(item, index)
        else:
            setattr(item, "sort_order", index)
    return items


def apply_permutation(items: List[T], requested_ids: Sequence[str], key: Callable[[T], str]) -> List[T]:
    """Return items in requested order; caller must have checked is_permutation."""
    by_id = {key(item): item for item in items}
    return [by_id[item_id] for item_id in requested_ids]


def is_dense(orders: Sequence[int]) -> bool:
    return sorted(orders) == list(range(len(orders)))
