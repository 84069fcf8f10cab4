import asyncio
import json

import httpx
import pytest

from src.modules.news_search.errors import ProviderError
from src.modules.news_search.schemas import Facet
from src.modules.providers.exa import ExaProvider
from src.modules.providers.newsmesh import INTL_SOURCE_COUNTRIES, NewsMeshProvider


def make_facets() -> list[Facet]:
    return [
        Facet(query="senate budget vote", category="politics"),
        Facet(query="budget market reaction", category="business", country="us"),
        Facet(query="budget health spending", category="health"),
        Facet(query="budget global view"),
    ]


def newsmesh_item(link: str, title: str = "Senate passes budget bill after debate - NPR") -> dict:
    return {
        "link": link,
        "title": title,
        "description": "Lawmakers approved the spending plan late on Friday.",
        "published_date": "2025-03-01T10:00:00Z",
        "author": ["Jane Doe", "John Roe"],
        "source": "NPR",
        "media_url": "https://media.npr.org/image.jpg",
    }


def test_newsmesh_sends_one_call_per_facet() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": [newsmesh_item("https://www.npr.org/2025/03/01/budget")]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = NewsMeshProvider("key", client=client)

    records = asyncio.run(provider.search(make_facets(), "thematic", 7))

    assert len(requests) == 4
    assert all(r.url.path == "/v1/search" for r in requests)
    by_query = {r.url.params["q"]: r.url.params for r in requests}
    first = by_query["senate budget vote"]
    second = by_query["budget market reaction"]
    last = by_query["budget global view"]
    assert first["apiKey"] == "key"
    assert first["sortBy"] == "relevant"
    assert first["category"] == "politics"
    assert second["country"] == "us"
    assert "sourceCountry" not in second
    assert last["sortBy"] == "date"
    assert last["sourceCountry"] == INTL_SOURCE_COUNTRIES
    assert "from" in first

    record = records[0]
    assert record.title == "Senate passes budget bill after debate"
    assert record.source_domain == "npr.org"
    assert record.source_tier == 2
    assert record.author == "Jane Doe"
    assert record.snippet.startswith("Lawmakers approved")
    assert record.origin_provider == "newsmesh"


def test_newsmesh_survey_adds_trending_and_latest() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"data": []})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = NewsMeshProvider("key", client=client)

    asyncio.run(provider.search(make_facets(), "survey", 2))

    assert sorted(paths) == sorted(["/v1/search"] * 4 + ["/v1/trending", "/v1/latest"])


def test_newsmesh_partial_failure_keeps_successful_calls() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["q"] == "senate budget vote":
            return httpx.Response(500)
        return httpx.Response(200, json={"data": [newsmesh_item(f"https://npr.org/{request.url.params['q']}")]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = NewsMeshProvider("key", client=client)

    records = asyncio.run(provider.search(make_facets(), "thematic", 7))

    assert len(records) == 3


def test_newsmesh_all_calls_failing_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = NewsMeshProvider("key", client=client)

    with pytest.raises(ProviderError):
        asyncio.run(provider.search(make_facets(), "thematic", 7))


def test_newsmesh_without_key_returns_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = NewsMeshProvider("", client=client)

    assert asyncio.run(provider.search(make_facets(), "thematic", 7)) == []


def test_exa_posts_queries_and_maps_results() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-api-key"] == "exa-key"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"results": [{
            "url": "https://www.theguardian.com/politics/2025/mar/01/budget",
            "title": "Budget bill clears Senate vote",
            "text": "x" * 1000,
            "highlights": ["The Senate approved\nthe budget on Friday."],
            "publishedDate": "2025-03-01T09:00:00Z",
            "author": "A. Writer",
        }]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = ExaProvider("exa-key", client=client)

    records = asyncio.run(provider.search(make_facets(), "thematic", 7))

    assert sorted(b["query"] for b in bodies) == ["budget market reaction", "senate budget vote"]
    assert bodies[0]["numResults"] == 7
    assert bodies[0]["category"] == "news"
    record = records[0]
    assert record.snippet == "The Senate approved the budget on Friday."
    assert record.source_domain == "theguardian.com"
    assert record.source_tier == 1
    assert record.word_count == 200
    assert record.reading_time_minutes == 1
    assert record.origin_provider == "exa"


def test_exa_deep_mode_uses_three_queries() -> None:
    count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal count
        count += 1
        return httpx.Response(200, json={"results": []})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = ExaProvider("exa-key", client=client)

    asyncio.run(provider.search(make_facets(), "deep", 30))

    assert count == 3


def test_exa_falls_back_to_text_for_snippet() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{
            "url": "https://unknown-blog.example/post",
            "title": "A long read",
            "text": "y" * 500,
        }]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = ExaProvider("exa-key", client=client)

    records = asyncio.run(provider.search(make_facets()[:1], "thematic", 7))

    assert records[0].snippet == "y" * 300
    assert records[0].source_tier == 0
    assert records[0].source_display_name == "unknown-blog.example"


def test_exa_timeouts_raise_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = ExaProvider("exa-key", client=client)

    with pytest.raises(ProviderError):
        asyncio.run(provider.search(make_facets(), "thematic", 7))
