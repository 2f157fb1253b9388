import pytest

from conftest import OWNER

from snippetvault.application.dto.snippet_dtos import CreateSnippetDTO
from snippetvault.application.services.snippet_view import SnippetView
from snippetvault.domain.entities.query import QueryPredicate


@pytest.mark.asyncio
async def test_view_filters_and_memoizes(cache, dispatcher, monkeypatch):
    await dispatcher.create(OWNER, CreateSnippetDTO(title="React Hook", code="x", language="javascript"))
    await dispatcher.create(OWNER, CreateSnippetDTO(title="Vue thing", code="x", language="javascript"))
    view = SnippetView(cache, OWNER, QueryPredicate(text="hook"))
    assert [s.title for s in view.snippets] == ["React Hook"]

    import snippetvault.application.services.snippet_view as mod

    calls = []
    original = mod.filter_snippets

    def counting(collection, predicate):
        calls.append(predicate)
        return original(collection, predicate)

    monkeypatch.setattr(mod, "filter_snippets", counting)
    view.snippets
    view.snippets
    assert calls == []

    view.set_predicate(QueryPredicate(text="vue"))
    assert [s.title for s in view.snippets] == ["Vue thing"]
    assert len(calls) == 1

    view.clear_filters()
    assert len(view.snippets) == 2
    assert view.stats.total == 2
    assert view.stats.by_language == {"javascript": 2}


@pytest.mark.asyncio
async def test_view_recomputes_after_refetch_and_notifies(cache, dispatcher):
    changes = []
    view = SnippetView(cache, OWNER, on_change=lambda v: changes.append(v.snapshot.is_stale))
    assert view.snippets == []
    await dispatcher.create(OWNER, CreateSnippetDTO(title="a", code="x"))
    assert [s.title for s in view.snippets] == ["a"]
    assert changes and changes[-1] is False

    view.close()
    count = len(changes)
    await dispatcher.create(OWNER, CreateSnippetDTO(title="b", code="x"))
    assert len(changes) == count


def test_view_ignores_other_owners(cache):
    changes = []
    SnippetView(cache, OWNER, on_change=lambda v: changes.append(v))
    cache.get_snapshot("someone-else")
    cache.invalidate("someone-else")
    assert changes == []
