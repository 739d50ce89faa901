from dataclasses import replace

import httpx
import pytest

from biomed_leads.core.models import Location, SearchResult
from biomed_leads.core.scheduler import FetchScheduler
from biomed_leads.etl.dedupe import Deduplicator
from biomed_leads.jobs.collect import SearchCollector, build_query
from biomed_leads.vendors.serper import SearchApiError, SearchRateLimitedError, SerperClient

KEYWORD = "fertilização in vitro FIV"


class FakeSearchClient:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries = []
        self.closed = False

    async def search(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def aclose(self):
        self.closed = True


def _collector(store, client, settings, scheduler=None, keywords=(KEYWORD,)):
    return SearchCollector(
        store,
        client,
        scheduler or FetchScheduler(3, 0.0),
        keywords=keywords,
        settings=settings,
    )


@pytest.mark.asyncio
async def test_second_run_issues_no_queries(store, settings):
    store.add_location("SC", "Joaçaba", population=30146, ibge_id=4209003)
    client = FakeSearchClient(
        [SearchResult(title="Clínica de Reprodução Humana Joaçaba", link="https://fivjoacaba.com.br")]
    )

    first = await _collector(store, client, settings).collect()
    log_count, establishment_count = store.count_search_log(), store.count_establishments()
    second = await _collector(store, client, settings).collect()

    assert first.queries == 1
    assert first.inserted == 1
    assert client.queries == [f"{KEYWORD} Joaçaba SC"]
    assert second.queries == 0
    assert second.skipped == 1
    assert store.count_search_log() == log_count == 1
    assert store.count_establishments() == establishment_count == 1


@pytest.mark.asyncio
async def test_same_lab_listed_twice_collapses_after_dedupe(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    client = FakeSearchClient(
        [
            SearchResult(title="Laboratório XYZ análises", link="https://xyz.com.br", snippet="..."),
            SearchResult(title="Laboratorio XYZ Analises LTDA", link="https://xyz.com.br", snippet="..."),
        ]
    )

    stats = await _collector(store, client, settings).collect()
    Deduplicator(store, settings=settings).run()

    assert stats.inserted == 2
    remaining = store.list_establishments()
    assert len(remaining) == 1
    assert remaining[0].website == "https://xyz.com.br"


@pytest.mark.asyncio
async def test_locations_ordered_by_population_and_filtered(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    store.add_location("SC", "Florianópolis", population=537211)
    store.add_location("SC", "Ouro", population=7000)
    client = FakeSearchClient()

    await _collector(store, client, settings, scheduler=FetchScheduler(1, 0.0)).collect()

    assert client.queries == [f"{KEYWORD} Florianópolis SC", f"{KEYWORD} Joaçaba SC"]


@pytest.mark.asyncio
async def test_rate_limited_query_triggers_cooldown_and_is_not_logged(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    scheduler = FetchScheduler(1, 0.0, cooldown=60.0)
    client = FakeSearchClient(error=SearchRateLimitedError("429"))

    stats = await _collector(store, client, settings, scheduler=scheduler).collect()

    assert stats.rate_limited == 1
    assert stats.queries == 0
    assert scheduler.cooling_down() is True
    assert store.count_search_log() == 0

    retry = FakeSearchClient()
    await _collector(store, retry, settings).collect()

    assert retry.queries == [f"{KEYWORD} Joaçaba SC"]
    assert store.count_search_log() == 1


@pytest.mark.asyncio
async def test_failed_query_is_not_logged(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    client = FakeSearchClient(error=SearchApiError("HTTP 500"))

    stats = await _collector(store, client, settings).collect()

    assert stats.failed == 1
    assert store.count_search_log() == 0


@pytest.mark.asyncio
async def test_rejected_results_logged_when_enabled(store, settings):
    location = store.add_location("SC", "Joaçaba", population=30146)
    client = FakeSearchClient(
        [
            SearchResult(title="Home", link="https://clinica.com.br/"),
            SearchResult(title="Laboratório Genética Sul", link="https://geneticasul.com.br"),
        ]
    )

    stats = await _collector(store, client, replace(settings, log_rejected=True)).collect()

    assert stats.rejected == 1
    assert stats.accepted == 1
    assert len(store.rejected) == 1
    assert store.rejected[0].reason == "generic_title"
    assert store.rejected[0].location_id == location.id
    assert store.list_establishments()[0].category == "LABORATORIO_GENETICA"


@pytest.mark.asyncio
async def test_rejected_results_not_logged_by_default(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    client = FakeSearchClient([SearchResult(title="Home", link="https://clinica.com.br/")])

    await _collector(store, client, settings).collect()

    assert store.rejected == []
    assert store.count_establishments() == 0


def test_build_query():
    location = Location(id=1, region="PR", name="Curitiba", population=1773718)

    assert build_query("andrologia", location) == "andrologia Curitiba PR"


@pytest.mark.asyncio
async def test_malformed_search_response_does_not_abort_collection(store, settings):
    store.add_location("SC", "Joaçaba", population=30146)
    store.add_location("SC", "Florianópolis", population=537211)

    def handler(request):
        return httpx.Response(200, json=[{"x": 1}])

    client = SerperClient(settings=settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    stats = await _collector(store, client, settings).collect()
    await client.client.aclose()

    assert stats.failed == 2
    assert stats.queries == 0
    assert store.count_search_log() == 0
