"""Website enrichment utilities for extracting public contact data."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

import httpx
from bs4 import BeautifulSoup

from biomed_leads.core.config import Settings, get_settings
from biomed_leads.core.models import ExtractedContacts

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
}
MAX_TEXT_CHARS = 50_000

CONTACT_SELECTORS = (
    "header",
    "footer",
    "[class*='contact']",
    "[id*='contact']",
    "[class*='contato']",
    "[id*='contato']",
    "[class*='fale-conosco']",
    "[id*='fale-conosco']",
)
CONTACT_PAGE_CANDIDATES = ("/contato", "/contact", "/fale-conosco", "/faleconosco", "/atendimento")

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_REGEX = re.compile(r"(?:\+55\s?)?(?:\(?\d{2}\)?\s?)?\d{4,5}[-.\s]?\d{4}")
WHATSAPP_REGEX = re.compile(r"(?:wa\.me|api\.whatsapp\.com/send\?phone=)[\d/]+", re.IGNORECASE)
SOCIAL_REGEXES = {
    "instagram": re.compile(r"(?:instagram\.com|instagr\.am)/([a-zA-Z0-9_.]+)", re.IGNORECASE),
    "facebook": re.compile(r"facebook\.com/([a-zA-Z0-9_.]+)", re.IGNORECASE),
    "linkedin": re.compile(r"linkedin\.com/(?:company|in)/([a-zA-Z0-9_-]+)", re.IGNORECASE),
}
# Path segments that are share widgets or platform pages, not profile handles.
SOCIAL_RESERVED = {
    "sharer",
    "sharer.php",
    "share.php",
    "share",
    "plugins",
    "dialog",
    "profile.php",
    "tr",
    "p",
    "reel",
    "explore",
    "watch",
}

EMAIL_BLOCKLIST = ("example", "sentry", "@w3.org", "wixpress", "domain.com", "email.com", "seudominio", "seuemail")
EMAIL_FILE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".css", ".js")

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 13


def _unique(values) -> List[str]:
    return list(dict.fromkeys(values))


def extract_emails(text: str) -> List[str]:
    """Return unique emails in order of appearance, minus placeholder and asset matches."""
    emails = []
    for match in EMAIL_REGEX.findall(text or ""):
        lowered = match.lower()
        if any(blocked in lowered for blocked in EMAIL_BLOCKLIST):
            continue
        if lowered.endswith(EMAIL_FILE_SUFFIXES):
            continue
        emails.append(lowered)
    return _unique(emails)


def extract_phones(text: str) -> List[str]:
    """Digits-only Brazilian phone numbers with 10 to 13 digits."""
    phones = []
    for match in PHONE_REGEX.findall(text or ""):
        digits = re.sub(r"\D", "", match)
        if MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            phones.append(digits)
    return _unique(phones)


def extract_whatsapp(text: str) -> List[str]:
    return _unique(match.lower() for match in WHATSAPP_REGEX.findall(text or ""))


def extract_social_handles(text: str) -> Dict[str, List[str]]:
    handles: Dict[str, List[str]] = {}
    for platform, pattern in SOCIAL_REGEXES.items():
        found = [
            handle.rstrip(".")
            for handle in pattern.findall(text or "")
            if handle.rstrip(".").lower() not in SOCIAL_RESERVED
        ]
        found = _unique(handle for handle in found if handle)
        if found:
            handles[platform] = found
    return handles


def extract_contacts_from_text(text: str) -> ExtractedContacts:
    return ExtractedContacts(
        emails=extract_emails(text),
        phones=extract_phones(text),
        whatsapp=extract_whatsapp(text),
        socials=extract_social_handles(text),
    )


def scoped_text(soup: BeautifulSoup) -> str:
    """Text of header, footer and contact-ish blocks plus every href, bounded in size."""
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    sections = []
    for selector in CONTACT_SELECTORS:
        for node in soup.select(selector):
            sections.append(node.get_text(" ", strip=True))
    hrefs = [anchor.get("href", "") for anchor in soup.find_all("a", href=True)]
    return " ".join(sections + hrefs)[:MAX_TEXT_CHARS]


def find_contact_page(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    """First same-host link whose path looks like a contact page."""
    base_host = urlparse(base_url).netloc.lower().removeprefix("www.")
    for anchor in soup.find_all("a", href=True):
        absolute = urljoin(base_url, anchor["href"].strip())
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https"):
            continue
        if parsed.netloc.lower().removeprefix("www.") != base_host:
            continue
        path = parsed.path.lower().rstrip("/")
        if any(path.endswith(candidate) for candidate in CONTACT_PAGE_CANDIDATES):
            candidate_url = urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))
            if candidate_url.rstrip("/") != base_url.rstrip("/"):
                return candidate_url
    return None


class ContactExtractor:
    """Fetch a page and pull typed contact identifiers out of its contact-bearing regions.

    ``extract`` never raises: transport errors, oversize or non-HTML bodies
    and parse failures all come back as an empty ``ExtractedContacts``.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        follow_contact_page: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.max_bytes = self.settings.crawl_max_bytes
        self.follow_contact_page = (
            self.settings.enrich_follow_contact_page if follow_contact_page is None else follow_contact_page
        )
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=self.settings.crawl_timeout,
            follow_redirects=True,
            max_redirects=self.settings.crawl_max_redirects,
            transport=transport,
        )

    async def fetch_html(self, url: str) -> Optional[Tuple[str, str]]:
        """Return (final_url, html) for HTML responses within the byte cap.

        The client timeout only bounds each connect/read step, so the whole
        fetch also runs under a ``crawl_timeout`` deadline.
        """
        try:
            return await asyncio.wait_for(self._fetch(url), self.settings.crawl_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out fetching %s after %.1fs", url, self.settings.crawl_timeout)
            return None

    async def _fetch(self, url: str) -> Optional[Tuple[str, str]]:
        try:
            async with self.client.stream("GET", url) as response:
                if response.status_code >= 400:
                    logger.debug("Skipping %s: HTTP %s", url, response.status_code)
                    return None
                content_type = response.headers.get("Content-Type", "").lower()
                if "html" not in content_type:
                    logger.debug("Skipping non-HTML content at %s (content-type=%s)", url, content_type)
                    return None

                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    logger.debug("Skipping %s: declared size %s exceeds cap", url, declared)
                    return None

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        logger.debug("Skipping %s: body exceeds %d bytes", url, self.max_bytes)
                        return None
                encoding = response.encoding or "utf-8"
                return str(response.url), body.decode(encoding, errors="replace")
        except (httpx.HTTPError, httpx.InvalidURL, LookupError) as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
            return None

    async def extract(self, url: str) -> ExtractedContacts:
        fetched = await self.fetch_html(url)
        if not fetched:
            return ExtractedContacts()

        final_url, html = fetched
        try:
            soup = BeautifulSoup(html, "html.parser")
            contact_page = find_contact_page(soup, final_url) if self.follow_contact_page else None
            contacts = extract_contacts_from_text(scoped_text(soup))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to parse %s: %s", final_url, exc)
            return ExtractedContacts()

        if contact_page:
            contacts = contacts.merge(await self._extract_single(contact_page))
        return contacts

    async def _extract_single(self, url: str) -> ExtractedContacts:
        fetched = await self.fetch_html(url)
        if not fetched:
            return ExtractedContacts()
        try:
            return extract_contacts_from_text(scoped_text(BeautifulSoup(fetched[1], "html.parser")))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to parse %s: %s", url, exc)
            return ExtractedContacts()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ContactExtractor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
