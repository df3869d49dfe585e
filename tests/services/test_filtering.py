from conftest import at, quake

from app.api.schemas import WeatherData
from app.services.filtering import (
    apply_filtering_and_sorting, filter_and_sort, is_filterable_collection
)


def ids(items):
    return [item.id for item in items]


def test_undated_items_are_dropped_and_rest_sorted_newest_first() -> None:
    items = [
        quake("a", at(1)),
        quake("b", None),
        quake("c", at(3)),
        quake("d", at(2)),
    ]

    assert ids(filter_and_sort(items)) == ["c", "d", "a"]


def test_category_filter_keeps_only_matching_items() -> None:
    items = [
        quake("a", at(1), category="earthquake"),
        quake("b", at(2), category="quarry blast"),
        quake("c", at(3), category="earthquake"),
        quake("d", at(4), category=None),
    ]

    result = filter_and_sort(items, category="earthquake")

    assert ids(result) == ["c", "a"]
    assert all(item.category == "earthquake" and item.created_at is not None for item in result)


def test_descending_flag_is_ignored_without_sort_field() -> None:
    items = [quake("a", at(1)), quake("b", at(2))]

    assert ids(filter_and_sort(items, descending=False)) == ["b", "a"]


def test_sort_by_created_at_ascending() -> None:
    items = [quake("a", at(2)), quake("b", at(1)), quake("c", at(3))]

    assert ids(filter_and_sort(items, sort_by="createdAt")) == ["b", "a", "c"]
    assert ids(filter_and_sort(items, sort_by="createdAt", descending=True)) == ["c", "a", "b"]


def test_sort_by_relevance_puts_unscored_items_last() -> None:
    items = [
        quake("a", at(1), relevance=50),
        quake("b", at(2), relevance=None),
        quake("c", at(3), relevance=400),
    ]

    assert ids(filter_and_sort(items, sort_by="relevance", descending=True)) == ["c", "a", "b"]
    assert ids(filter_and_sort(items, sort_by="Relevance")) == ["a", "c", "b"]


def test_unknown_sort_field_falls_back_to_newest_first() -> None:
    items = [quake("a", at(1)), quake("b", at(2))]

    assert ids(filter_and_sort(items, sort_by="magnitude", descending=False)) == ["b", "a"]


def test_is_filterable_collection() -> None:
    assert is_filterable_collection([quake("a", at(1))])
    assert not is_filterable_collection([])
    assert not is_filterable_collection([quake("a", at(1)), "text"])
    assert not is_filterable_collection(WeatherData(summary="Clear", temp_c=20))


def test_non_filterable_entries_pass_through_unchanged() -> None:
    weather = WeatherData(summary="Clear", temp_c=22.5)
    data = {
        "Weather": weather,
        "Earthquakes": [quake("a", at(1)), quake("b", None), quake("c", at(2))],
        "Empty": [],
    }

    result = apply_filtering_and_sorting(data)

    assert result["Weather"] is weather
    assert result["Empty"] == []
    assert ids(result["Earthquakes"]) == ["c", "a"]


def test_single_filterable_item_is_dropped_when_filtered_out() -> None:
    data = {"Latest": quake("a", at(1), category="explosion")}

    assert apply_filtering_and_sorting(data, category="earthquake") == {"Latest": None}
    assert apply_filtering_and_sorting(data)["Latest"].id == "a"
