# link_resolver.py
import base64
import binascii
import logging
from typing import Callable, Dict
from urllib.parse import urlsplit, urlunsplit

from datastructures import DownloadTarget, ResolvedLinks
from errors import PatternNotFound
from fetcher import PageFetcher
from link_extractor import extract, extract_required
import config

logger = logging.getLogger(__name__)

# Gate fetches that land on a URL containing this marker need one more hop
LAZY_REDIRECT_MARKER = "file-download"


def viewer_to_direct(url: str) -> str:
    """
    'https://host/<...>/<id>' -> 'https://host/d/<id>'. The hosting site
    serves the raw file on /d/<id> for every /<id> viewer page.
    """
    parts = urlsplit(url)
    segment = parts.path.rstrip("/").rsplit("/", 1)[-1]
    return urlunsplit((parts.scheme, parts.netloc, f"/d/{segment}", parts.query, ""))


# Per-host rewrite from authorizing page URL to direct-download URL.
# Revalidate these if the host changes its URL scheme.
DIRECT_LINK_RULES: Dict[str, Callable[[str], str]] = {
    "modsfire.com": viewer_to_direct,
}


def derive_direct_url(authorizing_url: str, rules: Dict[str, Callable[[str], str]] = DIRECT_LINK_RULES) -> str:
    host = (urlsplit(authorizing_url).hostname or "").lower()
    if host.startswith("www."):
        host = host[len("www."):]
    rule = rules.get(host, viewer_to_direct)
    return rule(authorizing_url)


class RedirectChainResolver:
    def __init__(self, fetcher: PageFetcher, direct_link_rules: Dict[str, Callable[[str], str]] = DIRECT_LINK_RULES):
        self.fetcher = fetcher
        self.direct_link_rules = direct_link_rules

    def _find_authorizing_url(self, mirror_url: str, referer: str) -> str:
        """Follows the mirror page's client-side redirect to the hosting page."""
        page = self.fetcher.fetch(mirror_url, referer=referer)
        location = extract("document_location", page.text)
        if location:
            return location

        # Newer countdown pages hop through an intermediate "get" page first
        intermediate_url = extract("intermediate_link", page.text)
        if not intermediate_url:
            raise PatternNotFound("document_location", page.url)
        logger.debug(f"Fetching intermediate redirect page: {intermediate_url}")
        intermediate = self.fetcher.fetch(intermediate_url, referer=mirror_url)
        return extract_required("location_replace", intermediate.text, intermediate.url)

    def _finish(self, authorizing_url: str) -> ResolvedLinks:
        direct_url = derive_direct_url(authorizing_url, self.direct_link_rules)
        logger.info(f"Authorizing page: {authorizing_url}")
        logger.info(f"Direct download URL: {direct_url}")
        return ResolvedLinks(direct_url=direct_url, authorizing_url=authorizing_url)

    def resolve(self, target: DownloadTarget) -> ResolvedLinks:
        start_url = config.START_URL_TEMPLATE.format(path=target.path)
        logger.info(f"Fetching initial page: {start_url}")
        start_page = self.fetcher.fetch(start_url, referer=start_url)
        gate_url = extract_required("gate_link", start_page.text, start_page.url)

        logger.info(f"Fetching gate page: {gate_url}")
        gate_page = self.fetcher.fetch(gate_url, referer=start_url)

        if LAZY_REDIRECT_MARKER in urlsplit(gate_page.url).path:
            lazy_url = extract_required("lazy_redirect", gate_page.text, gate_page.url)
            logger.info(f"Resolving final mirror URL from: {lazy_url}")
            # Only the effective URL of this hop matters, not its body
            mirror_url = self.fetcher.fetch(lazy_url, referer=start_url).url
        else:
            mirror_url = gate_page.url
        logger.info(f"Mirror URL: {mirror_url}")

        return self._finish(self._find_authorizing_url(mirror_url, referer=start_url))

    def resolve_from_shortener(self, shortener_url: str, target: DownloadTarget) -> ResolvedLinks:
        """
        Resolves a link-shortener URL taken from a channel message. Plugin
        shorteners redirect straight to the hosting page; mod shorteners go
        through a landing page whose MIRROR 1 link carries the mirror URL
        base64-encoded in its last path segment.
        """
        logger.info(f"Fetching shortener page: {shortener_url}")
        shortener_page = self.fetcher.fetch(shortener_url)
        redirect_url = extract_required("document_location", shortener_page.text, shortener_page.url)

        if target is DownloadTarget.PLUGIN:
            return self._finish(redirect_url)

        logger.info(f"Fetching landing page: {redirect_url}")
        landing_page = self.fetcher.fetch(redirect_url, referer=shortener_url)
        pseudo_link = extract_required("mirror_pseudo_link", landing_page.text, landing_page.url)
        encoded = pseudo_link.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
        try:
            mirror_url = base64.b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise PatternNotFound("mirror_pseudo_link", landing_page.url)
        logger.info(f"Mirror URL: {mirror_url}")

        return self._finish(self._find_authorizing_url(mirror_url, referer=redirect_url))
