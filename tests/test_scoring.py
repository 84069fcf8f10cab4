from datetime import datetime, timedelta, timezone

from src.modules.news_search.scoring import (
    _diversity_bonus,
    cluster_by_topic,
    extract_topic_words,
    greedy_select,
    score_article,
    select_articles,
)
from src.modules.providers.schemas import ArticleRecord

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_article(
    title: str,
    domain: str = "npr.org",
    tier: int = 2,
    paywall: str = "free",
    region: str = "US",
    published_at: str | None = None,
) -> ArticleRecord:
    slug = title.lower().replace(" ", "-")
    return ArticleRecord(
        title=title,
        url=f"https://{domain}/news/{slug}",
        source_domain=domain,
        source_display_name=domain,
        source_tier=tier,
        source_region=region,
        paywall_status=paywall,
        published_at=published_at,
        origin_provider="exa",
    )


def test_base_score_adds_tier_paywall_and_recency() -> None:
    fresh = make_article("Fresh wire story", tier=1, published_at=(NOW - timedelta(hours=2)).isoformat())
    week_old = make_article("Older analysis piece", tier=3, paywall="metered",
                            published_at=(NOW - timedelta(days=3)).isoformat())
    undated = make_article("Undated hard paywall piece", tier=0, paywall="hard")

    assert score_article(fresh, now=NOW) == 6.0
    assert score_article(week_old, now=NOW) == 2.5
    assert score_article(undated, now=NOW) == 0.0


def test_base_score_applies_ledger_penalty() -> None:
    article = make_article("Blocked outlet story", domain="example.com", tier=2)

    score = score_article(article, penalty=lambda domain: -5 if domain == "example.com" else 0, now=NOW)

    assert score == -1.0


def test_published_at_with_z_suffix_is_parsed() -> None:
    article = make_article("Recent story", tier=0, published_at="2025-03-01T10:00:00Z")

    assert score_article(article, now=NOW) == 3.0


def test_rfc_1123_published_date_gets_recency_bonus() -> None:
    article = make_article("Backfilled story", tier=0, published_at="Sat, 01 Mar 2025 10:00:00 GMT")
    garbled = make_article("Garbled date story", tier=0, published_at="last Tuesday")

    assert score_article(article, now=NOW) == 3.0
    assert score_article(garbled, now=NOW) == 2.0


def test_deep_mode_first_pass_takes_one_per_outlet() -> None:
    articles = [make_article(f"Perspective number {i} on tariffs") for i in range(10)]
    scored = [(a, score_article(a, now=NOW)) for a in articles]

    first_pass = greedy_select(scored, "deep", 10, {})

    assert len(first_pass) == 1


def test_relaxed_pass_allows_one_more_per_outlet() -> None:
    articles = [make_article(f"Perspective number {i} on tariffs") for i in range(10)]

    selected = select_articles(articles, "deep", 10, now=NOW)

    assert len(selected) == 2


def test_thematic_mode_allows_two_per_outlet() -> None:
    articles = [make_article(f"Climate policy angle {i}", domain="theguardian.com") for i in range(5)]
    scored = [(a, score_article(a, now=NOW)) for a in articles]

    assert len(greedy_select(scored, "thematic", 10, {})) == 2


def test_outlet_cap_uses_canonical_domains() -> None:
    articles = [
        make_article("Election night coverage", domain="bbc.com", tier=1),
        make_article("Election night results", domain="bbc.co.uk", tier=1),
    ]
    scored = [(a, score_article(a, now=NOW)) for a in articles]

    assert len(greedy_select(scored, "survey", 10, {})) == 1


def test_selection_respects_max_results() -> None:
    domains = ["npr.org", "cnn.com", "axios.com", "vox.com", "time.com", "dw.com"]
    articles = [make_article(f"Distinct headline {d}", domain=d) for d in domains]

    assert len(select_articles(articles, "thematic", 4, now=NOW)) == 4


def test_selection_prefers_higher_scores() -> None:
    articles = [
        make_article("Minor outlet story on trade", domain="example.net", tier=0, paywall="hard"),
        make_article("Wire service story on trade", domain="reuters.com", tier=1),
    ]

    selected = select_articles(articles, "thematic", 1, now=NOW)

    assert selected[0].source_domain == "reuters.com"


def test_topic_words_drop_stop_words() -> None:
    assert extract_topic_words("What the new Senate budget will mean for you") == [
        "senate", "budget", "mean",
    ]


def test_cluster_groups_same_story_and_drops_singletons() -> None:
    articles = [
        make_article("Senate passes budget bill after debate", domain="apnews.com"),
        make_article("Storm hits coastal towns", domain="cnn.com"),
        make_article("Budget bill clears Senate vote", domain="npr.org"),
    ]

    clusters = cluster_by_topic(articles)

    assert len(clusters) == 1
    assert [a.source_domain for a in clusters[0].articles] == ["apnews.com", "npr.org"]
    assert {"senate", "budget", "bill", "clears"} <= clusters[0].keywords


def strong_opening(titles: list[str]) -> list[tuple[ArticleRecord, float]]:
    domains = ["npr.org", "cnn.com", "axios.com"]
    return [(make_article(title, domain=d), 5.0) for title, d in zip(titles, domains)]


def test_survey_bonus_favours_new_topics_once_three_are_picked() -> None:
    scored = strong_opening(["Senate budget vote", "Storm hits coast", "Tariff talks stall"])
    scored += [
        (make_article("Senate budget vote delayed", domain="time.com"), -0.5),
        (make_article("Wildfire smoke blankets valley", domain="vox.com"), -0.5),
    ]

    selected = greedy_select(scored, "survey", 4, {})

    assert [a.source_domain for a in selected] == ["npr.org", "cnn.com", "axios.com", "vox.com"]


def test_low_scores_are_kept_before_three_selections() -> None:
    scored = [
        (make_article("Senate budget vote", domain="npr.org"), 5.0),
        (make_article("Senate budget vote delayed", domain="cnn.com"), -0.5),
    ]

    assert len(greedy_select(scored, "survey", 10, {})) == 2


def test_thematic_bonus_rewards_new_outlets_and_regions() -> None:
    scored = strong_opening(["Climate policy one", "Climate policy two", "Climate policy three"])
    scored += [
        (make_article("Climate policy four", domain="npr.org"), -1.2),
        (make_article("Climate policy five", domain="time.com"), -2.2),
        (make_article("Climate policy six", domain="dw.com", region="EU"), -2.2),
    ]

    selected = greedy_select(scored, "thematic", 10, {})

    assert [a.source_domain for a in selected] == ["npr.org", "cnn.com", "axios.com", "dw.com"]


def test_deep_bonus_rewards_new_regions() -> None:
    scored = strong_opening(["Tariff view one", "Tariff view two", "Tariff view three"])
    scored += [
        (make_article("Tariff view four", domain="time.com"), -3.5),
        (make_article("Tariff view five", domain="dw.com", region="EU"), -3.5),
    ]

    selected = greedy_select(scored, "deep", 10, {})

    assert [a.source_domain for a in selected] == ["npr.org", "cnn.com", "axios.com", "dw.com"]


def test_diversity_bonus_values() -> None:
    article = make_article("Tariff talks stall", region="EU")

    assert _diversity_bonus(article, "survey", 0, set(), set()) == 2.0
    assert _diversity_bonus(article, "survey", 0, set(), {"tariff", "talks"}) == -1.0
    assert _diversity_bonus(article, "thematic", 0, {"EU"}, set()) == 1.0
    assert _diversity_bonus(article, "thematic", 1, set(), set()) == 0.5
    assert _diversity_bonus(article, "deep", 0, set(), set()) == 3.0
    assert _diversity_bonus(article, "deep", 1, {"EU"}, set()) == -2.0
