"""
Domain Connector - Abstract base class for all public-record sources.

A connector knows how to search one external source and how to pull
keywords of a given category out of the records that source returns.
The engine only ever talks to connectors through this interface.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Optional, Sequence


class DomainType(str, Enum):
    """Identifiers of the bundled data sources."""
    ONAPI = "ONAPI"                    # Trademark registry
    SCJ = "SCJ"                        # Supreme court case index
    DGII = "DGII"                      # Tax registry
    PGR = "PGR"                        # Attorney general news
    GOOGLE_DORKING = "GOOGLE_DORKING"  # Web search, fraud keywords
    SOCIAL_MEDIA = "SOCIAL_MEDIA"      # Web search, social sites
    FILE_TYPE = "FILE_TYPE"            # Web search, document types
    X_SOCIAL_MEDIA = "X_SOCIAL_MEDIA"  # Web search, x.com handles


class KeywordCategory(str, Enum):
    """Semantic classes of extracted keywords."""
    COMPANY_NAME = "company_name"
    PERSON_NAME = "person_name"
    ADDRESS = "address"
    CONTRIBUTOR_ID = "contributor_id"
    SOCIAL_MEDIA = "social_media"


def as_identifier(value: Any) -> str:
    """Normalize an enum member or plain string to its string identifier."""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class DomainConnector(ABC):
    """
    Abstract base class for all connectors.

    Subclasses declare their capabilities as class attributes and implement
    search() and data_by_category().

    Contract:
    ---------
    - search() returns a list of records (possibly empty) or raises
      ConnectorError. It never returns a partial result.
    - data_by_category() is pure and total: an unknown category gives [].
    """

    domain: str = ""
    searchable: Sequence[str] = ()
    retrievable: Sequence[str] = ()
    default_seed_category: Optional[str] = None

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def domain_type(self) -> str:
        return as_identifier(self.domain)

    @property
    def searchable_categories(self) -> List[str]:
        return [as_identifier(c) for c in self.searchable]

    @property
    def retrievable_categories(self) -> List[str]:
        return [as_identifier(c) for c in self.retrievable]

    @property
    def seed_category(self) -> str:
        """Category a depth-0 step against this domain is filed under."""
        if self.default_seed_category is not None:
            return as_identifier(self.default_seed_category)
        if self.searchable:
            return as_identifier(self.searchable[0])
        return "seed"

    @abstractmethod
    def search(self, query: str) -> List[Any]:
        """
        Search the backing source.

        Args:
            query: Keyword to search for

        Returns:
            List of domain records (empty when nothing matched)

        Raises:
            ConnectorError: On transport or parse failure
        """
        pass

    @abstractmethod
    def data_by_category(self, record: Any, category: str) -> List[str]:
        """Extract candidate keywords of one category from one record."""
        pass

    def accepts(self, category: str) -> bool:
        return as_identifier(category) in self.searchable_categories

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} domain='{self.domain_type}'>"
