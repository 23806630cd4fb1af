from __future__ import annotations

import allure
import pytest

from conftest import at, item

from newsdesk.errors import NotFoundError, ValidationError
from newsdesk.reader.folders import FolderRepository
from newsdesk.reader.models import ItemQuery, Scope, SearchMode, SortOrder
from newsdesk.reader.query import Cursor, ItemQueryEngine, fts_match_expression
from newsdesk.reader.repository import ItemStateRepository
from newsdesk.reader.tags import TagByName

pytestmark = [
    allure.epic("Reader"),
    allure.feature("Query Engine"),
]


def _ids(queries: ItemQueryEngine, **filters: object) -> list[int]:
    return [view.id for view in queries.query(ItemQuery(**filters)).items]  # type: ignore[arg-type]


def _walk(queries: ItemQueryEngine, **filters: object) -> list[list[int]]:
    pages: list[list[int]] = []
    cursor: str | None = None
    while True:
        page = queries.query(ItemQuery(cursor=cursor, **filters))  # type: ignore[arg-type]
        pages.append([view.id for view in page.items])
        if page.next_cursor is None:
            return pages
        cursor = page.next_cursor


@pytest.fixture()
def mixed_dates(seed_feed) -> None:
    # Colliding timestamps and missing dates exercise the (date, id) tie-break.
    seed_feed(
        item("a", published_at=at(3)),
        item("b", published_at=at(5)),
        item("c"),
        item("d", published_at=at(3)),
        item("e", published_at=at(4)),
        item("f"),
        item("g", published_at=at(3)),
    )


def test_newest_first_with_missing_dates_last(queries: ItemQueryEngine, mixed_dates: None) -> None:
    assert _ids(queries) == [2, 5, 7, 4, 1, 6, 3]


def test_oldest_first_with_missing_dates_first(
    queries: ItemQueryEngine,
    mixed_dates: None,
) -> None:
    assert _ids(queries, sort=SortOrder.OLDEST) == [3, 6, 1, 4, 7, 5, 2]


@pytest.mark.parametrize("sort", [SortOrder.NEWEST, SortOrder.OLDEST])
@pytest.mark.parametrize("limit", [1, 2, 3])
def test_cursor_pages_are_disjoint_and_exhaustive(
    queries: ItemQueryEngine,
    mixed_dates: None,
    sort: SortOrder,
    limit: int,
) -> None:
    pages = _walk(queries, sort=sort, limit=limit)
    flattened = [item_id for page in pages for item_id in page]

    assert all(len(page) <= limit for page in pages)
    assert len(flattened) == len(set(flattened))
    assert flattened == _ids(queries, sort=sort)


def test_unread_first_pages_put_unread_items_ahead(
    queries: ItemQueryEngine,
    state: ItemStateRepository,
    mixed_dates: None,
) -> None:
    state.mark_read(2, True)
    state.mark_read(3, True)

    pages = _walk(queries, unread_first=True, limit=2)
    flattened = [item_id for page in pages for item_id in page]

    assert flattened == [5, 7, 4, 1, 6, 2, 3]


def test_cursor_for_different_sort_is_rejected(
    queries: ItemQueryEngine,
    mixed_dates: None,
) -> None:
    page = queries.query(ItemQuery(limit=2))
    assert page.next_cursor is not None

    with pytest.raises(ValidationError) as error:
        queries.query(ItemQuery(limit=2, sort=SortOrder.OLDEST, cursor=page.next_cursor))
    assert error.value.code == "invalid_cursor"
    with pytest.raises(ValidationError):
        queries.query(ItemQuery(limit=2, unread_first=True, cursor=page.next_cursor))


@pytest.mark.parametrize("token", ["not-a-cursor", "eyJ2IjoyfQ==", "e30="])
def test_malformed_cursor_is_a_validation_error(queries: ItemQueryEngine, token: str) -> None:
    with pytest.raises(ValidationError):
        queries.query(ItemQuery(cursor=token))


def test_cursor_encoding_is_opaque_and_reversible() -> None:
    cursor = Cursor(published_at=at(3).replace(tzinfo=None), item_id=9, sort=SortOrder.NEWEST)

    assert Cursor.decode(cursor.encode()) == cursor


def test_folder_scope_with_unread_only_includes_subfolders(
    queries: ItemQueryEngine,
    state: ItemStateRepository,
    folders: FolderRepository,
    seed_feed,
) -> None:
    parent = folders.create_folder(name="Tech")
    child = folders.create_folder(name="Python", parent_id=parent.id)
    seed_feed(*(item(f"s1-{n}", published_at=at(n + 1)) for n in range(3)), folder_id=parent.id)
    seed_feed(*(item(f"s2-{n}", published_at=at(n + 1)) for n in range(4)), folder_id=child.id)
    seed_feed(item("elsewhere", published_at=at(9)))
    state.mark_read(1, True)
    state.mark_read(4, True)

    unread = _ids(queries, scope=Scope.FOLDER, folder_id=parent.id, unread_only=True)
    child_only = _ids(queries, scope=Scope.FOLDER, folder_id=child.id)

    assert len(unread) == 5
    assert 1 not in unread
    assert 4 not in unread
    assert 8 not in unread
    assert sorted(child_only) == [4, 5, 6, 7]


def test_scope_requires_an_existing_target(queries: ItemQueryEngine) -> None:
    with pytest.raises(ValidationError):
        queries.query(ItemQuery(scope=Scope.FEED))
    with pytest.raises(NotFoundError):
        queries.query(ItemQuery(scope=Scope.FEED, feed_id=404))
    with pytest.raises(ValidationError):
        queries.query(ItemQuery(scope=Scope.FOLDER))
    with pytest.raises(NotFoundError):
        queries.query(ItemQuery(scope=Scope.FOLDER, folder_id="missing"))


def test_muted_sources_are_hidden_unless_included(
    queries: ItemQueryEngine,
    seed_feed,
) -> None:
    seed_feed(item("loud", published_at=at(2)))
    quiet = seed_feed(item("quiet", published_at=at(3)), muted=True)

    assert _ids(queries) == [1]
    assert _ids(queries, muted_included=True) == [2, 1]
    assert _ids(queries, scope=Scope.FEED, feed_id=quiet.id) == []
    assert _ids(queries, scope=Scope.FEED, feed_id=quiet.id, muted_included=True) == [2]


def test_limit_is_capped_and_must_be_positive(queries: ItemQueryEngine, seed_feed) -> None:
    seed_feed(item("a"), item("b"))

    assert len(queries.query(ItemQuery(limit=10_000)).items) == 2
    with pytest.raises(ValidationError):
        queries.query(ItemQuery(limit=0))


def test_tag_filter_matches_any_selected_tag(
    queries: ItemQueryEngine,
    state: ItemStateRepository,
    seed_feed,
) -> None:
    seed_feed(item("a", published_at=at(1)), item("b", published_at=at(2)), item("c"))
    state.update_tags(1, add=[TagByName("python")])
    state.update_tags(2, add=[TagByName("rust")])
    python_id = queries.get_item(1).tags[0].id
    rust_id = queries.get_item(2).tags[0].id

    assert _ids(queries, tag_ids=(python_id,)) == [1]
    assert _ids(queries, tag_ids=(python_id, rust_id)) == [2, 1]


def test_basic_search_is_case_insensitive_substring(
    queries: ItemQueryEngine,
    seed_feed,
) -> None:
    seed_feed(
        item("a", title="Python 3.14 released", published_at=at(1)),
        item("b", title="Rust news", content="compared with pythonic code", published_at=at(2)),
        item("c", title="Weather", published_at=at(3)),
    )

    assert _ids(queries, search="PYTHON", search_mode=SearchMode.BASIC) == [2, 1]
    assert _ids(queries, search="100%", search_mode=SearchMode.BASIC) == []


def test_fts_search_matches_token_prefixes(queries: ItemQueryEngine, seed_feed) -> None:
    seed_feed(
        item("a", title="Python release notes", published_at=at(1)),
        item("b", title="Rust release", content="Python bindings", published_at=at(2)),
        item("c", title="Weather report", published_at=at(3)),
    )

    assert _ids(queries, search="pyth") == [2, 1]
    assert _ids(queries, search="python rust") == [2]
    assert _ids(queries, search="!!!") == []


def test_fts_match_expression_quotes_tokens() -> None:
    assert fts_match_expression('foo "bar" OR') == '"foo"* "bar"* "OR"*'
    assert fts_match_expression("  ") is None


def test_items_carry_read_state_and_feed_title(
    queries: ItemQueryEngine,
    state: ItemStateRepository,
    seed_feed,
) -> None:
    seed_feed(item("a", published_at=at(1)), title="Example Blog")
    state.mark_read(1, True)

    view = queries.get_item(1)

    assert view.is_read is True
    assert view.feed_title == "Example Blog"
    assert view.published_at == at(1)
    with pytest.raises(NotFoundError):
        queries.get_item(99)
