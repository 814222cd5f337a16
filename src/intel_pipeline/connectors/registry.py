"""
Connector Registry - Maps domain identifiers to connector instances.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..errors import ConfigError
from .base import DomainConnector, as_identifier
from .dgii import DgiiConnector
from .http_client import HttpClient, HttpConfig
from .onapi import OnapiConnector
from .pgr import PgrConnector
from .scj import ScjConnector
from .web_search import WebSearchConfig, create_web_search_connectors


class ConnectorRegistry:
    """Ordered lookup table of connectors keyed by domain identifier."""

    def __init__(self, connectors: Optional[Iterable[DomainConnector]] = None,
                 http_client: Optional[HttpClient] = None):
        self._connectors: Dict[str, DomainConnector] = {}
        self.http_client = http_client
        self.logger = logging.getLogger(self.__class__.__name__)
        for connector in connectors or []:
            self.register(connector)

    def register(self, connector: DomainConnector):
        domain = connector.domain_type
        if domain in self._connectors:
            self.logger.warning(f"Replacing connector for domain {domain}")
        self._connectors[domain] = connector

    def get(self, domain) -> DomainConnector:
        key = as_identifier(domain)
        try:
            return self._connectors[key]
        except KeyError:
            raise ConfigError(f"No connector registered for domain: {key}")

    def domains(self) -> List[str]:
        return list(self._connectors.keys())

    def __contains__(self, domain) -> bool:
        return as_identifier(domain) in self._connectors

    def __len__(self) -> int:
        return len(self._connectors)

    def __iter__(self):
        return iter(self._connectors.values())

    def close(self):
        """Release the shared HTTP sessions."""
        if self.http_client is not None:
            self.http_client.close_all()


def build_default_registry(http_config: Optional[HttpConfig] = None,
                           web_search_config: Optional[WebSearchConfig] = None) -> ConnectorRegistry:
    """Create the registry with every bundled connector sharing one HTTP client."""
    client = HttpClient(http_config)
    registry = ConnectorRegistry([
        OnapiConnector(client),
        ScjConnector(client),
        DgiiConnector(client),
        PgrConnector(client),
    ], http_client=client)
    for connector in create_web_search_connectors(client, web_search_config):
        registry.register(connector)
    return registry
