"""
PGR Connector - News search on the Attorney General's site (pgr.gob.do).
"""

from dataclasses import dataclass
from typing import List

from bs4 import BeautifulSoup

from .base import DomainConnector, DomainType, KeywordCategory
from .http_client import HttpClient


PGR_SEARCH_URL = "https://pgr.gob.do/"


@dataclass
class NewsArticle:
    """A news item linked from the search results page."""
    url: str
    title: str


class PgrConnector(DomainConnector):
    """
    WordPress site search; each hit is an <article> whose <h5><a> carries the
    link and title. Articles are evidence only, no keywords are extracted.
    """

    domain = DomainType.PGR
    searchable = (
        KeywordCategory.COMPANY_NAME,
        KeywordCategory.PERSON_NAME,
        KeywordCategory.ADDRESS,
    )
    retrievable = ()
    default_seed_category = KeywordCategory.PERSON_NAME

    def __init__(self, client: HttpClient, search_url: str = PGR_SEARCH_URL,
                 parser: str = 'html.parser'):
        super().__init__()
        self.client = client
        self.search_url = search_url
        self.parser = parser

    def search(self, query: str) -> List[NewsArticle]:
        html = self.client.get_text(self.domain_type, self.search_url, params={'s': query})
        articles = self.parse_results(html)
        self.logger.debug(f"PGR '{query}': {len(articles)} articles")
        return articles

    def parse_results(self, html: str) -> List[NewsArticle]:
        soup = BeautifulSoup(html, self.parser)
        articles = []
        for article in soup.find_all('article'):
            link = article.select_one('h5 a')
            if link is None or not link.get('href'):
                continue
            title = link.get('title') or link.get_text(" ", strip=True)
            articles.append(NewsArticle(url=link['href'], title=title.strip()))
        return articles

    def data_by_category(self, record: NewsArticle, category: str) -> List[str]:
        return []
