"""
SCJ Connector - Supreme Court of Justice ruling index.

The index is a DataTables endpoint: a form POST returns a JSON envelope
whose `data` list holds one entry per case file.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List

from ..errors import ConnectorError
from .base import DomainConnector, DomainType, KeywordCategory
from .http_client import HttpClient


SCJ_SEARCH_URL = "https://consultasentenciascj.poderjudicial.gob.do/Home/GetExpedientes"

# Splits "A, B vs. C" into parties
PARTY_SEPARATOR = re.compile(r'\s*,\s*|\s+vs\.?\s*', re.IGNORECASE)

# Corporate-form fragments left over after splitting on commas
CORPORATE_SUFFIXES = frozenset({
    "S. A.", "S.A.", "S.R.L.", "S. R. L.", "N. V.", "N.V.",
})


@dataclass
class CourtCase:
    """One ruling from the court index."""
    id_expediente: int
    no_expediente: str = ""
    no_sentencia: str = ""
    no_unico: str = ""
    id_tribunal: str = ""
    desc_tribunal: str = ""
    id_materia: str = ""
    desc_materia: str = ""
    fecha_fallo: str = ""
    involucrados: str = ""
    url_blob: str = ""
    extension: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'CourtCase':
        def text(key: str) -> str:
            return str(data.get(key) or "").strip()

        return cls(
            id_expediente=int(data.get('idExpediente') or 0),
            no_expediente=text('noExpediente'),
            no_sentencia=text('noSentencia'),
            no_unico=text('noUnico'),
            id_tribunal=text('idTribunal'),
            desc_tribunal=text('descTribunal'),
            id_materia=text('idMateria'),
            desc_materia=text('descMateria'),
            fecha_fallo=text('fechaFallo'),
            involucrados=text('involucrados'),
            url_blob=text('urlBlob'),
            extension=text('extension'),
        )


def split_parties(involucrados: str) -> List[str]:
    """Split the parties field into individual names."""
    names = []
    for name in PARTY_SEPARATOR.split(involucrados.strip()):
        name = name.strip()
        if not name or name in CORPORATE_SUFFIXES:
            continue
        names.append(name)
    return names


class ScjConnector(DomainConnector):
    """Court rulings searched by party name."""

    domain = DomainType.SCJ
    searchable = (KeywordCategory.PERSON_NAME, KeywordCategory.COMPANY_NAME)
    retrievable = (KeywordCategory.PERSON_NAME,)
    default_seed_category = KeywordCategory.PERSON_NAME

    def __init__(self, client: HttpClient, search_url: str = SCJ_SEARCH_URL,
                 page_length: int = 10):
        super().__init__()
        self.client = client
        self.search_url = search_url
        self.page_length = page_length

    def search(self, query: str) -> List[CourtCase]:
        payload = self.client.post_form_json(self.domain_type, self.search_url, data={
            'search[value]': query,
            'Contenido': query,
            'search[regex]': 'false',
            'start': '0',
            'length': str(self.page_length),
        })

        if not isinstance(payload, dict):
            raise ConnectorError(self.domain_type, "Unexpected response shape")

        try:
            cases = [CourtCase.from_api(item) for item in payload.get('data') or []]
        except (AttributeError, TypeError, ValueError) as e:
            raise ConnectorError(self.domain_type, f"Malformed case record: {e}") from e
        # Entries without a file id are placeholders
        cases = [c for c in cases if c.id_expediente]
        self.logger.debug(f"SCJ '{query}': {len(cases)} cases")
        return cases

    def data_by_category(self, record: CourtCase, category: str) -> List[str]:
        if category == KeywordCategory.PERSON_NAME.value:
            return split_parties(record.involucrados)
        return []
