"""
ONAPI Connector - Trademark registry (Oficina Nacional de la Propiedad Industrial).

Searches registered trademarks by text, then fetches the file detail of every
valid hit to obtain holder, agent and address.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ConnectorError
from .base import DomainConnector, DomainType, KeywordCategory
from .http_client import HttpClient


ONAPI_BASE_URL = "https://www.onapi.gob.do/busqapi/signos/"

ONAPI_HEADERS = {
    'Accept': 'application/json, text/plain, */*',
    'Referer': 'https://www.onapi.gob.do/busquedas2021/signos/buscar',
}


@dataclass
class TrademarkRecord:
    """One trademark file."""
    serie_expediente: int
    numero_expediente: int
    texto: str = ""
    titular: str = ""
    gestor: str = ""
    domicilio: str = ""
    tipo: str = ""
    sub_tipo: str = ""
    clases: str = ""
    status: str = ""
    expedicion: str = ""
    vencimiento: str = ""
    en_tramite: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return bool(self.numero_expediente) and bool(self.serie_expediente)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TrademarkRecord':
        def text(key: str) -> str:
            return (data.get(key) or "").strip()

        return cls(
            serie_expediente=int(data.get('serieExpediente') or 0),
            numero_expediente=int(data.get('numeroExpediente') or 0),
            texto=text('texto'),
            titular=text('titular'),
            gestor=text('gestor'),
            domicilio=text('domicilio'),
            tipo=text('tipo'),
            sub_tipo=text('subTipo'),
            clases=text('clases'),
            status=text('status'),
            expedicion=text('expedicion'),
            vencimiento=text('vencimiento'),
            en_tramite=bool(data.get('enTramite', False)),
        )


class OnapiConnector(DomainConnector):
    """Trademark registry searched by commercial name."""

    domain = DomainType.ONAPI
    searchable = (KeywordCategory.COMPANY_NAME,)
    retrievable = (
        KeywordCategory.COMPANY_NAME,
        KeywordCategory.PERSON_NAME,
        KeywordCategory.ADDRESS,
    )
    default_seed_category = KeywordCategory.COMPANY_NAME

    def __init__(self, client: HttpClient, base_url: str = ONAPI_BASE_URL,
                 page_size: int = 1000, fetch_details: bool = True):
        super().__init__()
        self.client = client
        self.base_url = base_url
        self.page_size = page_size
        self.fetch_details = fetch_details

    def search(self, query: str) -> List[TrademarkRecord]:
        payload = self.client.get_json(self.domain_type, self.base_url, params={
            'subtipo': '',
            'texto': query,
            'tipo': '',
            'clases': '',
            'pageSize': str(self.page_size),
            'pageIdx': '1',
        }, headers=ONAPI_HEADERS)

        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ConnectorError(self.domain_type, "Unexpected search response shape")

        records = []
        for item in payload:
            record = self._parse(item)
            if not record.is_valid:
                continue
            if self.fetch_details:
                record = self.get_details(record.numero_expediente, record.serie_expediente) or record
            records.append(record)

        self.logger.debug(f"ONAPI '{query}': {len(records)} valid records")
        return records

    def get_details(self, numero: int, serie: int) -> Optional[TrademarkRecord]:
        """Fetch the full file of one trademark."""
        payload = self.client.get_json(self.domain_type, self.base_url + "byexp", params={
            'numero': str(numero),
            'tipoExped': 'E',
            'serie': str(serie),
        }, headers=ONAPI_HEADERS)

        if not payload:
            return None
        if isinstance(payload, list):
            payload = payload[0]
        if not isinstance(payload, dict):
            raise ConnectorError(self.domain_type, "Unexpected detail response shape")
        return self._parse(payload)

    def _parse(self, item: Any) -> TrademarkRecord:
        try:
            return TrademarkRecord.from_api(item)
        except (AttributeError, TypeError, ValueError) as e:
            raise ConnectorError(self.domain_type, f"Malformed trademark record: {e}") from e

    def data_by_category(self, record: TrademarkRecord, category: str) -> List[str]:
        if category == KeywordCategory.COMPANY_NAME.value:
            return [record.texto]
        if category == KeywordCategory.PERSON_NAME.value:
            return [record.titular, record.gestor]
        if category == KeywordCategory.ADDRESS.value:
            return [record.domicilio]
        return []
