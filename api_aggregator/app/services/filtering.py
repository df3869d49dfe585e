"""
Filtering and sorting of FilterableItem collections inside aggregated data.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from ..api.schemas import FilterableItem

SORT_KEYS: Dict[str, Callable[[FilterableItem], Any]] = {
    'createdat': lambda item: item.created_at,
    'created_at': lambda item: item.created_at,
    'relevance': lambda item: item.relevance,
    'category': lambda item: item.category,
}


def is_filterable_collection(value: Any) -> bool:
    """True for a non-empty list/tuple made only of FilterableItem instances."""
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and all(isinstance(item, FilterableItem) for item in value)
    )


def matches_category(item: FilterableItem, category: Optional[str]) -> bool:
    return category is None or item.category == category


def filter_and_sort(
    items: Iterable[FilterableItem],
    category: Optional[str] = None,
    sort_by: Optional[str] = None,
    descending: bool = False
) -> List[FilterableItem]:
    """
    Drop undated items and items outside ``category``, then sort.

    Without ``sort_by`` (or with an unknown one) the result is newest first.
    With ``sort_by`` the ``descending`` flag picks the direction and items
    whose sort key is None go last.
    """
    survivors = [
        item for item in items
        if item.created_at is not None and matches_category(item, category)
    ]

    key = SORT_KEYS.get(sort_by.lower()) if sort_by else None
    if key is None:
        return sorted(survivors, key=lambda item: item.created_at, reverse=True)

    present = [item for item in survivors if key(item) is not None]
    missing = [item for item in survivors if key(item) is None]
    return sorted(present, key=key, reverse=descending) + missing


def apply_filtering_and_sorting(
    data: Dict[str, Any],
    category: Optional[str] = None,
    sort_by: Optional[str] = None,
    descending: bool = False
) -> Dict[str, Any]:
    """Filter/sort every filterable entry of a provider-name -> value mapping."""
    result = {}
    for name, value in data.items():
        if isinstance(value, FilterableItem):
            kept = filter_and_sort([value], category, sort_by, descending)
            result[name] = kept[0] if kept else None
        elif is_filterable_collection(value):
            result[name] = filter_and_sort(value, category, sort_by, descending)
        else:
            result[name] = value
    return result
