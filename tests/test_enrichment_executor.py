import asyncio

from src.modules.enrichment.contracts import EnrichmentHook
from src.modules.enrichment.hooks.news_composite import NewsCompositeHook
from src.modules.enrichment.registry import HookRegistry
from src.modules.enrichment.schemas import Candidate, EnrichmentData, ExecutorOptions
from src.modules.enrichment.service import EnrichmentExecutor
from src.modules.news_search.schemas import NewsCandidate


class ScriptedHook(EnrichmentHook):
    def __init__(self, name, verified=True, error=None, delay=0.0, priority=0, domains=("news",)):
        self.name = name
        self.domains = list(domains)
        self.priority = priority
        self.verified = verified
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def enrich(self, candidate, context):
        self.calls.append(candidate.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.verified is None:
            return None
        return EnrichmentData(verified=self.verified, source=self.name)


class BrokenHealthHook(ScriptedHook):
    async def health_check(self) -> bool:
        raise RuntimeError("upstream down")


def make_registry(*hooks: EnrichmentHook) -> HookRegistry:
    registry = HookRegistry()
    for hook in hooks:
        registry.register(hook)
    return registry


def test_first_verified_hook_wins() -> None:
    first = ScriptedHook("first", verified=False)
    second = ScriptedHook("second")
    third = ScriptedHook("third")
    executor = EnrichmentExecutor(make_registry(first, second, third))
    candidate = Candidate(name="story", enrichment_hooks=["first", "second", "third"])

    enriched, stats = asyncio.run(executor.execute([candidate]))

    assert enriched[0].verified
    assert enriched[0].enrichment.source == "second"
    assert third.calls == []
    assert stats.hook_success_rates == {"first": 0.0, "second": 1.0}


def test_failures_and_timeouts_fall_through() -> None:
    raising = ScriptedHook("raising", error=ValueError("bad payload"))
    slow = ScriptedHook("slow", delay=1.0)
    missing = ScriptedHook("missing", verified=None)
    executor = EnrichmentExecutor(make_registry(raising, slow, missing))
    candidate = Candidate(name="story", enrichment_hooks=["raising", "slow", "missing"])

    enriched, stats = asyncio.run(executor.execute([candidate], ExecutorOptions(timeout=0.05)))

    assert not enriched[0].verified
    assert enriched[0].enrichment is None
    assert stats.hook_success_rates == {"raising": 0.0, "slow": 0.0, "missing": 0.0}
    assert stats.candidates_verified == 0


def test_unknown_hooks_are_skipped_without_counting() -> None:
    known = ScriptedHook("known")
    executor = EnrichmentExecutor(make_registry(known))
    candidate = Candidate(name="story", enrichment_hooks=["ghost", "known"])

    enriched, stats = asyncio.run(executor.execute([candidate]))

    assert enriched[0].verified
    assert "ghost" not in stats.hook_success_rates


def test_candidates_are_isolated_and_order_preserved() -> None:
    flaky = ScriptedHook("flaky", error=RuntimeError("boom"))
    good = ScriptedHook("good")
    executor = EnrichmentExecutor(make_registry(flaky, good))
    candidates = [
        Candidate(name="a", enrichment_hooks=["flaky"]),
        Candidate(name="b", enrichment_hooks=["good"]),
        Candidate(name="c"),
    ]

    enriched, stats = asyncio.run(executor.execute(candidates))

    assert [c.name for c in enriched] == ["a", "b", "c"]
    assert [c.verified for c in enriched] == [False, True, False]
    assert stats.candidates_processed == 3
    assert stats.verification_rate == 1 / 3


def test_empty_input() -> None:
    enriched, stats = asyncio.run(EnrichmentExecutor(HookRegistry()).execute([]))

    assert enriched == []
    assert stats.verification_rate == 0.0


def test_news_composite_verifies_carried_payload() -> None:
    executor = EnrichmentExecutor(make_registry(NewsCompositeHook()))
    candidate = NewsCandidate(
        name="Senate passes budget",
        payload={"title": "Senate passes budget", "url": "https://npr.org/news/budget"},
    )
    bare = NewsCandidate(name="No payload")

    enriched, stats = asyncio.run(executor.execute([candidate, bare]))

    assert enriched[0].verified
    assert enriched[0].enrichment.data["url"] == "https://npr.org/news/budget"
    assert not enriched[1].verified
    assert stats.hook_success_rates == {"news_composite": 0.5}


def test_registry_orders_hooks_by_priority() -> None:
    registry = make_registry(
        ScriptedHook("low", priority=10),
        ScriptedHook("high", priority=90),
        ScriptedHook("other", priority=50, domains=("products",)),
    )

    assert [h.name for h in registry.hooks_for_domain("news")] == ["high", "low"]
    assert registry.has("other")
    assert registry.names() == ["low", "high", "other"]


def test_registry_health_check() -> None:
    registry = make_registry(NewsCompositeHook(), ScriptedHook("plain"), BrokenHealthHook("broken"))

    assert asyncio.run(registry.health_check()) == {
        "news_composite": True,
        "plain": True,
        "broken": False,
    }
