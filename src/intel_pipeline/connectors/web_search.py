"""
Web Search Connector - General web search with search-operator augmentation.

One underlying call (Google Custom Search JSON API) is specialised into
several domains by a fixed DorkingOptions policy per domain:

- GOOGLE_DORKING: results mentioning fraud-related words
- SOCIAL_MEDIA:   results restricted to social network sites
- FILE_TYPE:      results restricted to document file types
- X_SOCIAL_MEDIA: x.com results whose URL looks like a post or profile

Usage:
------
options = DorkingOptions(site_keywords=("facebook.com", "instagram.com"))
build_search_query("Acme", options)
# -> '"Acme" site:facebook.com OR site:instagram.com'
"""

import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from ..errors import ConnectorError
from .base import DomainConnector, DomainType, KeywordCategory
from .http_client import HttpClient


FRAUD_KEYWORDS = (
    "fraude", "estafa", "denuncia", "engaño", "irregular",
    "contrato", "pagos", "retrasos", "robo",
)

SOCIAL_MEDIA_SITES = (
    "facebook.com", "instagram.com", "linkedin.com",
    "x.com", "twitter.com", "tiktok.com", "youtube.com",
)

FILE_TYPES = ("pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx")

X_IN_URL_KEYWORDS = ("status",)

HANDLE_PATTERN = re.compile(r'(?<![\w@])@([A-Za-z0-9_]{2,30})\b')


@dataclass
class WebSearchConfig:
    """Configuration for the Custom Search API."""
    api_key: str = ""
    search_engine_id: str = ""
    endpoint: str = "https://www.googleapis.com/customsearch/v1"
    results_per_query: int = 10

    def __post_init__(self):
        """Fall back to environment credentials."""
        if not self.api_key:
            self.api_key = os.environ.get("GOOGLE_API_KEY", "")
        if not self.search_engine_id:
            self.search_engine_id = os.environ.get("GOOGLE_CX_KEY", "")


@dataclass(frozen=True)
class DorkingOptions:
    """Search operators appended to the quoted query."""
    include_keywords: Tuple[str, ...] = ()
    exclude_keywords: Tuple[str, ...] = ()
    site_keywords: Tuple[str, ...] = ()
    filetype_keywords: Tuple[str, ...] = ()
    in_url_keywords: Tuple[str, ...] = ()


@dataclass
class WebSearchResult:
    """One search engine hit."""
    url: str
    title: str = ""
    snippet: str = ""
    display_link: str = ""
    rank: int = 0


def build_search_query(query: str, options: DorkingOptions) -> str:
    """Render the query plus operators in the search engine's syntax."""
    parts = []
    if options.include_keywords:
        parts.append(f"intext:({' OR '.join(options.include_keywords)})")
    if options.filetype_keywords:
        parts.append("(" + " OR ".join(f"filetype:{t}" for t in options.filetype_keywords) + ")")
    if options.site_keywords:
        parts.append(" OR ".join(f"site:{s}" for s in options.site_keywords))
    if options.in_url_keywords:
        parts.append("(" + " OR ".join(f"inurl:{k}" for k in options.in_url_keywords) + ")")
    if options.exclude_keywords:
        parts.append("intext:(" + " OR ".join(f'-"{k}"' for k in options.exclude_keywords) + ")")

    quoted = f'"{query.strip()}"'
    return " ".join([quoted] + parts)


def extract_social_profiles(result: WebSearchResult) -> List[str]:
    """Profile URLs and @handles found in a hit."""
    found = []
    host = (urlparse(result.url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host in SOCIAL_MEDIA_SITES:
        found.append(result.url)

    for text in (result.title, result.snippet):
        for handle in HANDLE_PATTERN.findall(text or ""):
            found.append(f"@{handle}")
    return found


class WebSearchConnector(DomainConnector):
    """Custom Search API client specialised by a fixed DorkingOptions policy."""

    searchable = (KeywordCategory.COMPANY_NAME, KeywordCategory.PERSON_NAME)
    retrievable = (KeywordCategory.SOCIAL_MEDIA,)
    default_seed_category = KeywordCategory.COMPANY_NAME

    def __init__(self, client: HttpClient, domain: DomainType, options: DorkingOptions,
                 config: Optional[WebSearchConfig] = None,
                 searchable: Optional[Tuple[KeywordCategory, ...]] = None):
        super().__init__()
        self.client = client
        self.domain = domain
        self.options = options
        self.config = config or WebSearchConfig()
        if searchable is not None:
            self.searchable = searchable

    def search(self, query: str, options: Optional[DorkingOptions] = None) -> List[WebSearchResult]:
        if not query.strip():
            raise ConnectorError(self.domain_type, "query cannot be empty")
        if not self.config.api_key or not self.config.search_engine_id:
            raise ConnectorError(self.domain_type, "Custom Search credentials are not configured")

        q = build_search_query(query, options or self.options)
        self.logger.debug(f"{self.domain_type} query: {q}")

        payload = self.client.get_json(self.domain_type, self.config.endpoint, params={
            'key': self.config.api_key,
            'cx': self.config.search_engine_id,
            'q': q,
            'num': self.config.results_per_query,
        })
        if not isinstance(payload, dict):
            raise ConnectorError(self.domain_type, "Unexpected response shape")
        if 'error' in payload:
            message = payload['error'].get('message', 'unknown error') \
                if isinstance(payload['error'], dict) else str(payload['error'])
            raise ConnectorError(self.domain_type, f"Search API error: {message}")

        return self._parse_items(payload.get('items') or [])

    def _parse_items(self, items: List[Dict[str, Any]]) -> List[WebSearchResult]:
        results = []
        for rank, item in enumerate(items, start=1):
            link = item.get('link')
            if not link:
                continue
            results.append(WebSearchResult(
                url=link,
                title=(item.get('title') or "").strip(),
                snippet=(item.get('snippet') or "").strip(),
                display_link=item.get('displayLink') or "",
                rank=rank,
            ))
        return results

    def data_by_category(self, record: WebSearchResult, category: str) -> List[str]:
        if category == KeywordCategory.SOCIAL_MEDIA.value:
            return extract_social_profiles(record)
        return []


def create_web_search_connectors(client: HttpClient,
                                 config: Optional[WebSearchConfig] = None) -> List[WebSearchConnector]:
    """The four web-search domains with their fixed augmentation policies."""
    config = config or WebSearchConfig()
    return [
        WebSearchConnector(client, DomainType.GOOGLE_DORKING,
                           DorkingOptions(include_keywords=FRAUD_KEYWORDS), config),
        WebSearchConnector(client, DomainType.SOCIAL_MEDIA,
                           DorkingOptions(site_keywords=SOCIAL_MEDIA_SITES), config),
        WebSearchConnector(client, DomainType.FILE_TYPE,
                           DorkingOptions(filetype_keywords=FILE_TYPES), config),
        WebSearchConnector(client, DomainType.X_SOCIAL_MEDIA,
                           DorkingOptions(in_url_keywords=X_IN_URL_KEYWORDS, site_keywords=("x.com",)),
                           config,
                           searchable=(KeywordCategory.COMPANY_NAME,
                                       KeywordCategory.PERSON_NAME,
                                       KeywordCategory.SOCIAL_MEDIA)),
    ]


if __name__ == "__main__":
    for connector in create_web_search_connectors(HttpClient()):
        print(f"{connector.domain_type:15} {build_search_query('Acme', connector.options)}")
