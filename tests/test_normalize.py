from src.modules.providers.normalize import detect_article_type, normalize_title, reading_time
from src.modules.sources.models import (
    SourceEntry,
    SourceRegistry,
    canonical_outlet,
    extract_domain,
)


def test_normalize_title_strips_outlet_suffix() -> None:
    assert normalize_title("Senate passes the annual budget bill - The Washington Post") == (
        "Senate passes the annual budget bill"
    )
    assert normalize_title("Markets rally as inflation cools sharply | Reuters") == (
        "Markets rally as inflation cools sharply"
    )


def test_normalize_title_keeps_short_prefix_and_long_suffix() -> None:
    # The separator sits too close to the start to be an outlet suffix.
    assert normalize_title("Live - Election results") == "Live - Election results"
    title = "Ukraine talks resume in Geneva - officials say progress on prisoner swaps is close"
    assert normalize_title(title) == title


def test_normalize_title_decodes_entities_and_whitespace() -> None:
    assert normalize_title("  AT&amp;T   outage\nhits  millions ") == "AT&T outage hits millions"


def test_normalize_title_truncates_on_word_boundary() -> None:
    raw = " ".join(["word"] * 40)

    title = normalize_title(raw)

    assert len(title) <= 120
    assert title.endswith("…")
    assert not title[:-1].endswith(" ")


def test_detect_article_type_from_url() -> None:
    assert detect_article_type("https://nytimes.com/2025/03/01/opinion/tariffs.html") == "opinion"
    assert detect_article_type("https://bbc.com/news/analysis/budget") == "analysis"
    assert detect_article_type("https://vox.com/explainer/what-tariffs-do") == "explainer"
    assert detect_article_type("https://propublica.org/investigation/water") == "investigation"


def test_detect_article_type_from_title_and_author() -> None:
    assert detect_article_type("https://x.com/a", title="Opinion: The vote was wrong") == "opinion"
    assert detect_article_type("https://x.com/a", title="Why the Fed held rates") == "analysis"
    assert detect_article_type("https://x.com/a", title="What to know about the strike") == "explainer"
    assert detect_article_type("https://x.com/a", author="Opinion by Jane Doe") == "opinion"
    assert detect_article_type("https://x.com/a", title="Senate passes budget") == "reporting"


def test_reading_time() -> None:
    assert reading_time(None) is None
    assert reading_time(0) is None
    assert reading_time(40) == 1
    assert reading_time(1000) == 4


def test_extract_domain() -> None:
    assert extract_domain("https://www.bbc.co.uk/news/world") == "bbc.co.uk"
    assert extract_domain("https://edition.cnn.com/2025/03/01/x") == "edition.cnn.com"
    assert extract_domain("not a url") == ""


def test_registry_lookup_handles_subdomains() -> None:
    registry = SourceRegistry()
    assert registry.lookup("edition.cnn.com").display_name == "CNN"
    assert registry.lookup("www.japantimes.co.jp") is not None
    assert registry.lookup("unknown-outlet.example") is None
    assert registry.lookup("") is None


def test_registry_lookup_by_display_name() -> None:
    registry = SourceRegistry()
    assert registry.lookup_by_name("DW").display_name == "Deutsche Welle"
    assert registry.lookup_by_name("Some Blog") is None


def test_canonical_outlet() -> None:
    assert canonical_outlet("bbc.co.uk") == "bbc.com"
    assert canonical_outlet("news.yahoo.com") == "yahoo.com"
    assert canonical_outlet("npr.org") == "npr.org"


def test_registries_do_not_share_registrations() -> None:
    first, second = SourceRegistry(), SourceRegistry()

    assert first.register("ledger.example", SourceEntry("Example Ledger", 2, "EU", "free"))
    assert not first.register("reuters.com", SourceEntry("Impostor", 3, "US", "free"))

    assert first.lookup("ledger.example").display_name == "Example Ledger"
    assert second.lookup("ledger.example") is None
    assert "ledger.example" not in SourceRegistry()
    assert first.lookup("reuters.com").display_name == "Reuters"
