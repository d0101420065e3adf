"""HistoryQuery unit tests."""

from __future__ import annotations

from analyzer.services.history_query import HistoryQuery
from analyzer.services.history_service import HistoryStore, Submission


def build_store() -> HistoryStore:
    store = HistoryStore()
    entries = [
        Submission(images=(), prompt_text="p", analysis_text="Shows the LOGIN form", project=None, tags=()),
        Submission(images=(), prompt_text="p", analysis_text="Cart page", project="Checkout", tags=("payment",)),
        Submission(images=(), prompt_text="p", analysis_text="Settings", project="Account", tags=("Login-flow",)),
        Submission(images=(), prompt_text="p", analysis_text="Address form", project="Checkout Login", tags=()),
        Submission(images=(), prompt_text="p", analysis_text="Receipt", project="Checkout", tags=("payment", "email")),
    ]
    for entry in reversed(entries):
        store.insert_front(entry)
    return store


def texts(entries) -> list[str]:
    return [entry.analysis_text for entry in entries]


def test_search_matches_analysis_project_or_tag_case_insensitively():
    query = HistoryQuery(build_store())

    result = query.filter(search_text="login")

    assert texts(result) == ["Shows the LOGIN form", "Settings", "Address form"]


def test_project_filter_is_exact():
    query = HistoryQuery(build_store())

    assert texts(query.filter(project="Checkout")) == ["Cart page", "Receipt"]


def test_filters_compose_with_and():
    query = HistoryQuery(build_store())

    assert texts(query.filter(search_text="email", project="Checkout")) == ["Receipt"]
    assert query.filter(search_text="settings", project="Checkout") == []


def test_empty_filter_returns_everything_in_store_order():
    store = build_store()
    query = HistoryQuery(store)

    assert query.filter() == store.entries()
    assert query.filter(search_text="   ") == store.entries()


def test_distinct_facets_first_seen_order():
    query = HistoryQuery(build_store())

    assert query.distinct_projects() == ["Checkout", "Account", "Checkout Login"]
    assert query.distinct_tags() == ["payment", "Login-flow", "email"]


def test_views_follow_store_mutations():
    store = build_store()
    query = HistoryQuery(store)
    assert "Account" in query.distinct_projects()

    settings = query.filter(project="Account")[0]
    store.delete_by_id(settings.id)

    assert "Account" not in query.distinct_projects()
    assert "Login-flow" not in query.distinct_tags()
    assert texts(query.filter(search_text="login")) == ["Shows the LOGIN form", "Address form"]
