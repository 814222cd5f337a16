"""
DGII Connector - Tax registry (Dirección General de Impuestos Internos).

The RNC lookup is an ASP.NET WebForms page. A search is two requests:
1. GET the page to collect the hidden state fields (__VIEWSTATE, ...)
2. POST them back with either the tax id or the business-name field filled

Tax-id searches render a two-column detail table; name searches render a
results grid. Both are parsed with BeautifulSoup into TaxRegistration records.
"""

import re
import unicodedata
from dataclasses import dataclass, fields
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from ..errors import ConnectorError
from .base import DomainConnector, DomainType, KeywordCategory
from .http_client import HttpClient


DGII_LOOKUP_URL = "https://dgii.gov.do/app/WebApps/ConsultasWeb2/ConsultasWeb/consultas/rnc.aspx"

DETAIL_TABLE_ID = "cphMain_dvDatosContribuyentes"
GRID_TABLE_ID = "cphMain_gvBuscRazonSocial"

# Ordered: the first matching fragment wins
LABEL_FIELDS = [
    ("licencia", "licencia_comercial"),
    ("facturador", "facturador_electronico"),
    ("rnc", "rnc"),
    ("cedula", "rnc"),
    ("razon social", "razon_social"),
    ("nombre comercial", "nombre_comercial"),
    ("categoria", "categoria"),
    ("regimen", "regimen_pagos"),
    ("estado", "estado"),
    ("actividad", "actividad_economica"),
    ("administracion", "administracion_local"),
]


@dataclass
class TaxRegistration:
    """One taxpayer entry."""
    rnc: str = ""
    razon_social: str = ""
    nombre_comercial: str = ""
    categoria: str = ""
    regimen_pagos: str = ""
    estado: str = ""
    actividad_economica: str = ""
    administracion_local: str = ""
    facturador_electronico: str = ""
    licencia_comercial: str = ""


def normalize_label(label: str) -> str:
    """Lowercase, strip accents and punctuation from a table label."""
    decomposed = unicodedata.normalize('NFKD', label)
    ascii_text = decomposed.encode('ascii', 'ignore').decode('ascii').lower()
    return re.sub(r'[^a-z0-9]+', ' ', ascii_text).strip()


def label_to_field(label: str) -> Optional[str]:
    normalized = normalize_label(label)
    for fragment, field_name in LABEL_FIELDS:
        if fragment in normalized:
            return field_name
    return None


def is_tax_id(query: str) -> bool:
    """RNC numbers have 9 digits, personal ids (cédulas) 11."""
    digits = re.sub(r'[\s-]', '', query)
    return digits.isdigit() and len(digits) in (9, 11)


def parse_detail_table(soup: BeautifulSoup) -> List[TaxRegistration]:
    table = soup.find('table', id=DETAIL_TABLE_ID)
    if table is None:
        return []

    values: Dict[str, str] = {}
    for row in table.find_all('tr'):
        cells = row.find_all('td')
        if len(cells) < 2:
            continue
        field_name = label_to_field(cells[0].get_text(" ", strip=True))
        if field_name and field_name not in values:
            values[field_name] = cells[1].get_text(" ", strip=True)

    if not values.get('rnc'):
        return []
    return [TaxRegistration(**values)]


def parse_results_grid(soup: BeautifulSoup) -> List[TaxRegistration]:
    table = soup.find('table', id=GRID_TABLE_ID)
    if table is None:
        return []

    rows = table.find_all('tr')
    if not rows:
        return []

    header = [label_to_field(th.get_text(" ", strip=True)) for th in rows[0].find_all(['th', 'td'])]
    known = {f.name for f in fields(TaxRegistration)}

    records = []
    for row in rows[1:]:
        cells = row.find_all('td')
        # Pager rows have a single cell
        if len(cells) != len(header):
            continue
        values = {}
        for field_name, cell in zip(header, cells):
            if field_name in known:
                values[field_name] = cell.get_text(" ", strip=True)
        if values.get('rnc'):
            records.append(TaxRegistration(**values))
    return records


class DgiiConnector(DomainConnector):
    """Tax registry searched by tax id or business name."""

    domain = DomainType.DGII
    searchable = (KeywordCategory.CONTRIBUTOR_ID, KeywordCategory.COMPANY_NAME)
    retrievable = (KeywordCategory.CONTRIBUTOR_ID, KeywordCategory.COMPANY_NAME)
    default_seed_category = KeywordCategory.CONTRIBUTOR_ID

    def __init__(self, client: HttpClient, lookup_url: str = DGII_LOOKUP_URL,
                 parser: str = 'html.parser'):
        super().__init__()
        self.client = client
        self.lookup_url = lookup_url
        self.parser = parser

    def search(self, query: str) -> List[TaxRegistration]:
        form = self._hidden_fields(self.client.get_text(self.domain_type, self.lookup_url))
        if '__VIEWSTATE' not in form:
            raise ConnectorError(self.domain_type, "Lookup form state not found")

        if is_tax_id(query):
            form['ctl00$cphMain$txtRNCCedula'] = re.sub(r'[\s-]', '', query)
            form['ctl00$cphMain$btnBuscarPorRNC'] = 'BUSCAR'
        else:
            form['ctl00$cphMain$txtRazonSocial'] = query
            form['ctl00$cphMain$btnBuscarPorRazonSocial'] = 'BUSCAR'

        html = self.client.post_form_text(self.domain_type, self.lookup_url, data=form)
        soup = BeautifulSoup(html, self.parser)
        records = parse_detail_table(soup) or parse_results_grid(soup)

        self.logger.debug(f"DGII '{query}': {len(records)} registrations")
        return records

    def _hidden_fields(self, html: str) -> Dict[str, str]:
        soup = BeautifulSoup(html, self.parser)
        return {
            tag['name']: tag.get('value', '')
            for tag in soup.find_all('input', type='hidden')
            if tag.get('name')
        }

    def data_by_category(self, record: TaxRegistration, category: str) -> List[str]:
        if category == KeywordCategory.CONTRIBUTOR_ID.value:
            return [record.rnc]
        if category == KeywordCategory.COMPANY_NAME.value:
            return [record.razon_social, record.nombre_comercial]
        return []
