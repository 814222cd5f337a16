"""Shared fixtures: scripted connectors and in-memory stores."""

import threading
from typing import Any, Dict, List

import pytest

from intel_pipeline.connectors.base import DomainConnector, KeywordCategory
from intel_pipeline.connectors.registry import ConnectorRegistry
from intel_pipeline.core.run_service import PipelineDefaults, RunService
from intel_pipeline.errors import ConnectorError
from intel_pipeline.storage.snapshot_store import InMemorySnapshotStore


class ScriptedConnector(DomainConnector):
    """
    Connector whose answers are given up front.

    `responses` maps a query to a list of records (dicts keyed by category)
    or to an exception instance to raise. Unknown queries return [].
    """

    def __init__(self, domain: str, searchable=(), retrievable=(), seed_category=None,
                 responses: Dict[str, Any] = None):
        super().__init__()
        self.domain = domain
        self.searchable = tuple(searchable)
        self.retrievable = tuple(retrievable)
        self.default_seed_category = seed_category
        self.responses = responses or {}
        self.calls: List[str] = []
        self.lock = threading.Lock()

    def search(self, query: str) -> List[Any]:
        with self.lock:
            self.calls.append(query)
        response = self.responses.get(query, [])
        if isinstance(response, Exception):
            raise response
        return list(response)

    def data_by_category(self, record: Dict[str, Any], category: str) -> List[str]:
        value = record.get(category, [])
        if isinstance(value, str):
            return [value]
        return list(value)


@pytest.fixture
def registry_connector():
    """Trademark-like source: searched by company, yields person names."""
    return ScriptedConnector(
        "REGISTRY",
        searchable=(KeywordCategory.COMPANY_NAME,),
        retrievable=(KeywordCategory.PERSON_NAME,),
        responses={"Acme": [{"person_name": "John Doe"}]},
    )


@pytest.fixture
def court_connector():
    """Court-like source: searched by person, yields nothing further."""
    return ScriptedConnector(
        "COURT",
        searchable=(KeywordCategory.PERSON_NAME,),
        retrievable=(),
        responses={"John Doe": [{"case": "2021-001"}]},
    )


@pytest.fixture
def failing_connector():
    return ScriptedConnector(
        "BROKEN",
        searchable=(KeywordCategory.COMPANY_NAME,),
        retrievable=(KeywordCategory.PERSON_NAME,),
        responses={"Acme": ConnectorError("BROKEN", "HTTP 503 from https://example.org")},
    )


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def fast_defaults():
    return PipelineDefaults(
        delay_between_steps=0.0,
        available_domains=["REGISTRY", "COURT"],
    )


@pytest.fixture
def service(registry_connector, court_connector, store, fast_defaults):
    registry = ConnectorRegistry([registry_connector, court_connector])
    return RunService(registry, store, fast_defaults)
