from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass(frozen=True)
class SourceEntry:
    display_name: str
    tier: int  # 1 (highest) .. 3
    region: str
    paywall: str  # free | metered | hard
    specialty: str | None = None


CURATED_SOURCES: dict[str, SourceEntry] = {
    # Tier 1: wire services and papers of record
    "reuters.com": SourceEntry("Reuters", 1, "Wire", "free"),
    "apnews.com": SourceEntry("AP News", 1, "Wire", "free"),
    "afp.com": SourceEntry("AFP", 1, "Wire", "free"),
    "bbc.com": SourceEntry("BBC News", 1, "UK", "free"),
    "bbc.co.uk": SourceEntry("BBC News", 1, "UK", "free"),
    "nytimes.com": SourceEntry("The New York Times", 1, "US", "hard"),
    "washingtonpost.com": SourceEntry("Washington Post", 1, "US", "hard"),
    "wsj.com": SourceEntry("Wall Street Journal", 1, "US", "hard"),
    "theguardian.com": SourceEntry("The Guardian", 1, "UK", "free"),
    "ft.com": SourceEntry("Financial Times", 1, "UK", "hard"),
    "economist.com": SourceEntry("The Economist", 1, "UK", "hard"),
    "nature.com": SourceEntry("Nature", 1, "Global", "metered"),
    "science.org": SourceEntry("Science", 1, "Global", "metered"),

    # Tier 2: respected specialist and quality national outlets
    "wired.com": SourceEntry("Wired", 2, "US", "metered", "tech"),
    "arstechnica.com": SourceEntry("Ars Technica", 2, "US", "free", "tech"),
    "technologyreview.com": SourceEntry("MIT Tech Review", 2, "US", "metered", "tech"),
    "theatlantic.com": SourceEntry("The Atlantic", 2, "US", "hard"),
    "newyorker.com": SourceEntry("The New Yorker", 2, "US", "hard"),
    "propublica.org": SourceEntry("ProPublica", 2, "US", "free"),
    "bloomberg.com": SourceEntry("Bloomberg", 2, "US", "hard", "finance"),
    "cnbc.com": SourceEntry("CNBC", 2, "US", "free", "finance"),
    "cnn.com": SourceEntry("CNN", 2, "US", "free"),
    "cbsnews.com": SourceEntry("CBS News", 2, "US", "free"),
    "abcnews.go.com": SourceEntry("ABC News", 2, "US", "free"),
    "nbcnews.com": SourceEntry("NBC News", 2, "US", "free"),
    "techcrunch.com": SourceEntry("TechCrunch", 2, "US", "free", "tech"),
    "theverge.com": SourceEntry("The Verge", 2, "US", "free", "tech"),
    "politico.com": SourceEntry("Politico", 2, "US", "free", "politics"),
    "politico.eu": SourceEntry("Politico EU", 2, "EU", "free", "politics"),
    "axios.com": SourceEntry("Axios", 2, "US", "free"),
    "npr.org": SourceEntry("NPR", 2, "US", "free"),
    "foreignaffairs.com": SourceEntry("Foreign Affairs", 2, "US", "hard", "geopolitics"),
    "foreignpolicy.com": SourceEntry("Foreign Policy", 2, "US", "metered", "geopolitics"),
    "aljazeera.com": SourceEntry("Al Jazeera", 2, "MENA", "free"),
    "scmp.com": SourceEntry("South China Morning Post", 2, "Asia", "metered"),
    "lemonde.fr": SourceEntry("Le Monde", 2, "EU", "metered"),
    "dw.com": SourceEntry("Deutsche Welle", 2, "EU", "free"),
    "france24.com": SourceEntry("France 24", 2, "EU", "free"),
    "euronews.com": SourceEntry("Euronews", 2, "EU", "free"),
    "japantimes.co.jp": SourceEntry("The Japan Times", 2, "Asia", "metered"),
    "thehindu.com": SourceEntry("The Hindu", 2, "Asia", "metered"),
    "abc.net.au": SourceEntry("ABC Australia", 2, "Oceania", "free"),
    "time.com": SourceEntry("Time", 2, "US", "metered"),
    "usatoday.com": SourceEntry("USA Today", 2, "US", "free"),

    # Tier 3: good regional and niche outlets
    "salon.com": SourceEntry("Salon", 3, "US", "free"),
    "slate.com": SourceEntry("Slate", 3, "US", "free"),
    "vox.com": SourceEntry("Vox", 3, "US", "free"),
    "zdnet.com": SourceEntry("ZDNet", 3, "US", "free", "tech"),
    "venturebeat.com": SourceEntry("VentureBeat", 3, "US", "free", "tech"),
    "defenseone.com": SourceEntry("Defense One", 3, "US", "free", "defense"),
    "theintercept.com": SourceEntry("The Intercept", 3, "US", "free"),
    "sfchronicle.com": SourceEntry("San Francisco Chronicle", 3, "US", "metered"),
    "latimes.com": SourceEntry("Los Angeles Times", 3, "US", "hard"),
    "thehill.com": SourceEntry("The Hill", 3, "US", "free", "politics"),
    "yahoo.com": SourceEntry("Yahoo News", 3, "US", "free"),
}

# Variant hostnames of one outlet collapse onto a single canonical domain.
DOMAIN_CANONICALS: dict[str, str] = {
    "bbc.co.uk": "bbc.com",
    "theguardian.co.uk": "theguardian.com",
    "nytimes.co.uk": "nytimes.com",
    "washingtonpost.co.uk": "washingtonpost.com",
    "finance.yahoo.com": "yahoo.com",
    "news.yahoo.com": "yahoo.com",
}

# Display names some providers return instead of a usable link domain.
SOURCE_NAME_TO_DOMAIN: dict[str, str] = {
    "Reuters": "reuters.com",
    "Associated Press": "apnews.com",
    "AP News": "apnews.com",
    "BBC": "bbc.com",
    "BBC News": "bbc.com",
    "The Guardian": "theguardian.com",
    "Al Jazeera": "aljazeera.com",
    "Deutsche Welle": "dw.com",
    "DW": "dw.com",
    "France 24": "france24.com",
    "NPR": "npr.org",
    "CNN": "cnn.com",
    "CNBC": "cnbc.com",
    "Axios": "axios.com",
    "Politico": "politico.com",
    "The Hill": "thehill.com",
    "South China Morning Post": "scmp.com",
    "The Japan Times": "japantimes.co.jp",
}


def extract_domain(url: str) -> str:
    """Hostname of ``url`` without a leading ``www.``; empty for junk input."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host.removeprefix("www.")


def canonical_outlet(domain: str) -> str:
    return DOMAIN_CANONICALS.get(domain, domain)


class SourceRegistry:
    """Domain -> outlet lookup: the curated table plus outlets discovered at runtime.

    Each instance starts from its own copy of the curated table, so
    registrations never leak between registries.
    """

    def __init__(self, entries: dict[str, SourceEntry] | None = None) -> None:
        self._entries = dict(CURATED_SOURCES if entries is None else entries)

    def __contains__(self, domain: str) -> bool:
        return domain in self._entries

    def lookup(self, domain: str) -> SourceEntry | None:
        """Exact match first, then the last two and last three hostname labels."""
        if not domain:
            return None
        entry = self._entries.get(domain)
        if entry is not None:
            return entry
        parts = domain.split(".")
        if len(parts) > 2:
            return self._entries.get(".".join(parts[-2:])) or self._entries.get(
                ".".join(parts[-3:])
            )
        return None

    def lookup_by_name(self, name: str) -> SourceEntry | None:
        domain = SOURCE_NAME_TO_DOMAIN.get(name)
        return self.lookup(domain) if domain else None

    def register(self, domain: str, entry: SourceEntry) -> bool:
        """Add a newly discovered outlet. Curated entries always win."""
        if domain in self._entries:
            return False
        self._entries[domain] = entry
        return True
