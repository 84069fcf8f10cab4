import logging
from typing import Any

import httpx
from bs4 import BeautifulSoup

from src.modules.extraction.contracts import ArticleExtractor
from src.modules.extraction.schemas import ExtractionResult
from src.modules.extraction_cache.schemas import ExtractedArticle
from src.modules.source_tracker.schemas import Outcome
from src.modules.sources.models import extract_domain

logger = logging.getLogger(__name__)

DIFFBOT_URL = "https://api.diffbot.com/v3/article"
SOFT_TIMEOUT = 3.5

_PAYWALL_STATUSES = (401, 402, 403)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def _word_count(text: str) -> int:
    return len(text.split())


class DiffbotExtractor(ArticleExtractor):
    """Article extraction through the Diffbot article API."""

    name = "diffbot"

    def __init__(
        self,
        token: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = SOFT_TIMEOUT,
    ) -> None:
        self._token = token
        self._client = client or httpx.AsyncClient()
        self._timeout = timeout

    async def aclose(self) -> None:
        await self._client.aclose()

    async def extract(self, url: str) -> ExtractionResult:
        domain = extract_domain(url)
        try:
            response = await self._client.get(
                DIFFBOT_URL,
                params={"token": self._token, "url": url},
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            logger.info("Diffbot timeout for %s", domain)
            return ExtractionResult(outcome=Outcome.TIMEOUT)
        except httpx.RequestError as exc:
            logger.info("Diffbot error for %s: %s", domain, exc)
            return ExtractionResult(outcome=Outcome.NO_TEXT)

        if response.status_code >= 400:
            logger.info("Diffbot HTTP %d for %s", response.status_code, domain)
            outcome = Outcome.PAYWALL if response.status_code in _PAYWALL_STATUSES else Outcome.NO_TEXT
            return ExtractionResult(outcome=outcome)

        try:
            payload = response.json()
        except ValueError:
            logger.info("Diffbot returned invalid JSON for %s", domain)
            return ExtractionResult(outcome=Outcome.NO_TEXT)

        objects = payload.get("objects") or []
        obj: dict[str, Any] = objects[0] if objects else {}
        text = obj.get("text")
        if not text:
            logger.info("Diffbot extracted no text for %s", domain)
            return ExtractionResult(outcome=Outcome.NO_TEXT)

        images = obj.get("images") or []
        return ExtractionResult(
            outcome=Outcome.SUCCESS,
            article=ExtractedArticle(
                author=obj.get("author") or None,
                date=obj.get("date") or None,
                site_name=obj.get("siteName") or None,
                image_url=images[0].get("url") if images else None,
                text=text,
                word_count=_word_count(text),
            ),
        )


class HtmlExtractor(ArticleExtractor):
    """Fetches the page itself and pulls paragraphs out of the article body."""

    name = "html"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = SOFT_TIMEOUT,
    ) -> None:
        self._client = client or httpx.AsyncClient()
        self._timeout = timeout

    async def aclose(self) -> None:
        await self._client.aclose()

    async def extract(self, url: str) -> ExtractionResult:
        domain = extract_domain(url)
        try:
            response = await self._client.get(
                url,
                headers=_HEADERS,
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException:
            logger.info("Fetch timeout for %s", domain)
            return ExtractionResult(outcome=Outcome.TIMEOUT)
        except httpx.RequestError as exc:
            logger.info("Fetch error for %s: %s", domain, exc)
            return ExtractionResult(outcome=Outcome.NO_TEXT)

        if response.status_code >= 400:
            logger.info("HTTP %d for %s", response.status_code, domain)
            outcome = Outcome.PAYWALL if response.status_code in _PAYWALL_STATUSES else Outcome.NO_TEXT
            return ExtractionResult(outcome=outcome)

        article = self._parse_article_page(response.text)
        if not article.text:
            logger.info("No text extracted for %s", domain)
            return ExtractionResult(outcome=Outcome.NO_TEXT)
        return ExtractionResult(outcome=Outcome.SUCCESS, article=article)

    @staticmethod
    def _meta(soup: BeautifulSoup, **attrs: str) -> str | None:
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return str(tag["content"]).strip()
        return None

    @classmethod
    def _parse_article_page(cls, html: str) -> ExtractedArticle:
        soup = BeautifulSoup(html, "lxml")

        content_area = soup.select_one("article") or soup.select_one("main")
        if content_area:
            paragraphs = content_area.find_all("p")
            text = "\n\n".join(
                p.get_text(strip=True) for p in paragraphs if p.get_text(strip=True)
            )
        else:
            text = ""

        # Script-rendered pages often carry only the meta description
        if not text:
            text = (
                cls._meta(soup, property="og:description")
                or cls._meta(soup, name="description")
                or ""
            )

        return ExtractedArticle(
            author=cls._meta(soup, name="author"),
            date=cls._meta(soup, property="article:published_time"),
            site_name=cls._meta(soup, property="og:site_name"),
            image_url=cls._meta(soup, property="og:image"),
            text=text or None,
            word_count=_word_count(text) if text else None,
        )


def build_extractor(diffbot_token: str, timeout: float = SOFT_TIMEOUT) -> ArticleExtractor:
    if diffbot_token:
        return DiffbotExtractor(diffbot_token, timeout=timeout)
    logger.info("No Diffbot token configured, falling back to HTML extraction")
    return HtmlExtractor(timeout=timeout)
