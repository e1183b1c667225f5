# link_extractor.py
import re
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from bs4 import BeautifulSoup

from errors import PatternNotFound

logger = logging.getLogger(__name__)

# Bump when any rule below changes so logs show which page shapes were expected
RULESET_VERSION = "2025.11"


@dataclass(frozen=True)
class ExtractionRule:
    """
    A named, pure text-in/match-out rule. Either `pattern` (a regex whose
    first group is the value) or `selector` + `attribute` (an element lookup
    through BeautifulSoup) must be set.
    """
    name: str
    pattern: Optional[str] = None
    selector: Optional[str] = None
    attribute: Optional[str] = None
    flags: int = 0

    def apply(self, html: str) -> Optional[str]:
        if self.pattern is not None:
            match = re.search(self.pattern, html, self.flags)
            return match.group(1) if match and match.group(1) else None

        soup = BeautifulSoup(html, "html.parser")
        element = soup.select_one(self.selector)
        if element is None:
            return None
        value = element.get(self.attribute)
        return value or None


RULES: Dict[str, ExtractionRule] = {rule.name: rule for rule in (
    # Start page: anchor labelled "MIRROR" or "MIRROR 2" pointing at the gate
    ExtractionRule("gate_link", pattern=r"href='([^']*)'[^>]*?>\s*MIRROR(?:\s+\d+)?\s*</a>"),
    # Lazy-redirect hosts wrap the real mirror in a noreferrer anchor
    ExtractionRule("lazy_redirect", selector="a[rel~=noreferrer]", attribute="href"),
    ExtractionRule("document_location", pattern=r"document\.location\.href\s*=\s*['\"](.*?)['\"]"),
    # Countdown pages that hand off through an intermediate "get" page
    ExtractionRule("intermediate_link", pattern=r"href\s*=\s*[\"'](https://go\.linkify\.ru/get/[^\"']+)[\"']"),
    ExtractionRule("location_replace", pattern=r"window\.location\.replace\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    # Link-shortener landing page reached from a channel message
    ExtractionRule("mirror_pseudo_link", pattern=r"<span\s+class=\"pseudo-link js-link\"\s+data-href=\"(.*?)\"[^>]*>MIRROR 1</span>"),
    # Captcha challenge fields on the authorizing page
    ExtractionRule("csrf_token", selector="input[name=_token]", attribute="value"),
    ExtractionRule("file_id", selector="input#file_id", attribute="value"),
    ExtractionRule("site_key", selector=".cf-turnstile[data-sitekey]", attribute="data-sitekey"),
    ExtractionRule("upload_date", pattern=r"data-bs-original-title=\"File upload date\".*?<p>\s*(.*?)\s*</p>", flags=re.DOTALL),
)}


def extract(rule_name: str, html: str) -> Optional[str]:
    """Applies a named rule; returns None when it does not match."""
    value = RULES[rule_name].apply(html)
    logger.debug(f"Rule '{rule_name}' (ruleset {RULESET_VERSION}): {'matched' if value else 'no match'}")
    return value


def extract_required(rule_name: str, html: str, url: Optional[str] = None) -> str:
    """Applies a named rule and raises PatternNotFound when it does not match."""
    value = extract(rule_name, html)
    if value is None:
        raise PatternNotFound(rule_name, url)
    return value
