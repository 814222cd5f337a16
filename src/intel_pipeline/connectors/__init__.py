"""
Connectors Module - Public-record data sources.

Components:
-----------
- DomainConnector: Interface every source implements
- ConnectorRegistry: Domain identifier -> connector lookup
- OnapiConnector: Trademark registry
- ScjConnector: Court ruling index
- DgiiConnector: Tax registry
- PgrConnector: Attorney general news
- WebSearchConnector: Web search with operator policies (four domains)
- HttpClient: Shared requests transport with retries

Usage:
------
from intel_pipeline.connectors import build_default_registry

registry = build_default_registry()
court = registry.get("SCJ")
cases = court.search("Juan Perez")
names = court.data_by_category(cases[0], "person_name")
"""

from .base import DomainConnector, DomainType, KeywordCategory, as_identifier
from .dgii import DgiiConnector, TaxRegistration
from .http_client import HttpClient, HttpConfig
from .onapi import OnapiConnector, TrademarkRecord
from .pgr import NewsArticle, PgrConnector
from .registry import ConnectorRegistry, build_default_registry
from .scj import CourtCase, ScjConnector
from .web_search import (
    DorkingOptions,
    WebSearchConfig,
    WebSearchConnector,
    WebSearchResult,
    build_search_query,
)

__all__ = [
    'DomainConnector',
    'DomainType',
    'KeywordCategory',
    'as_identifier',
    'ConnectorRegistry',
    'build_default_registry',
    'HttpClient',
    'HttpConfig',
    'OnapiConnector',
    'TrademarkRecord',
    'ScjConnector',
    'CourtCase',
    'DgiiConnector',
    'TaxRegistration',
    'PgrConnector',
    'NewsArticle',
    'WebSearchConnector',
    'WebSearchConfig',
    'WebSearchResult',
    'DorkingOptions',
    'build_search_query',
]
