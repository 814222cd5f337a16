import threading

import pytest
import requests

from intel_pipeline.connectors import build_default_registry
from intel_pipeline.connectors.base import DomainType
from intel_pipeline.connectors.dgii import DgiiConnector, is_tax_id, label_to_field
from intel_pipeline.connectors.http_client import HttpClient, HttpConfig
from intel_pipeline.connectors.onapi import OnapiConnector
from intel_pipeline.connectors.pgr import PgrConnector
from intel_pipeline.connectors.scj import ScjConnector, split_parties
from intel_pipeline.connectors.web_search import (
    DorkingOptions,
    WebSearchConfig,
    WebSearchConnector,
    WebSearchResult,
    build_search_query,
    create_web_search_connectors,
    extract_social_profiles,
)
from intel_pipeline.errors import ConnectorError
from intel_pipeline.pipeline.keyword_extractor import extract_categories


@pytest.fixture
def client():
    return HttpClient(HttpConfig(max_retries=0))


class TestHttpClient:

    def test_transport_error_becomes_connector_error(self, client, monkeypatch):
        def boom(*args, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(client.get_session(), "request", boom)

        with pytest.raises(ConnectorError) as excinfo:
            client.get_json("ONAPI", "https://example.org")
        assert excinfo.value.domain == "ONAPI"
        assert "connection refused" in str(excinfo.value)

    def test_non_2xx_status(self, client, monkeypatch):
        response = requests.Response()
        response.status_code = 503
        monkeypatch.setattr(client.get_session(), "request", lambda *a, **kw: response)

        with pytest.raises(ConnectorError, match="HTTP 503"):
            client.get_text("PGR", "https://example.org")

    def test_invalid_json(self, client, monkeypatch):
        response = requests.Response()
        response.status_code = 200
        response._content = b"<html>maintenance</html>"
        monkeypatch.setattr(client.get_session(), "request", lambda *a, **kw: response)

        with pytest.raises(ConnectorError, match="Invalid JSON"):
            client.get_json("SCJ", "https://example.org")

    def test_sessions_of_finished_threads_are_closed(self, client):
        worker = threading.Thread(target=client.get_session)
        worker.start()
        worker.join()
        stale = next(iter(client.sessions.values()))
        closed = []
        stale.close = lambda: closed.append(True)

        session = client.get_session()

        assert closed == [True]
        assert list(client.sessions.values()) == [session]

    def test_close_all(self, client):
        client.get_session()

        client.close_all()

        assert client.sessions == {}


class TestOnapi:

    def test_search_with_details(self, client, monkeypatch):
        def fake_get_json(domain, url, params=None, headers=None):
            if url.endswith("byexp"):
                return [{
                    'serieExpediente': 2019, 'numeroExpediente': int(params['numero']),
                    'texto': "ACME", 'titular': " John Doe ", 'gestor': "Jane Roe",
                    'domicilio': "Calle 1, Santo Domingo",
                }]
            return [
                {'serieExpediente': 2019, 'numeroExpediente': 1234, 'texto': "ACME"},
                {'serieExpediente': 0, 'numeroExpediente': 0, 'texto': "placeholder"},
            ]

        monkeypatch.setattr(client, "get_json", fake_get_json)
        connector = OnapiConnector(client)

        records = connector.search("Acme")

        assert len(records) == 1
        assert records[0].titular == "John Doe"
        assert extract_categories(connector, records) == {
            'company_name': ["ACME"],
            'person_name': ["John Doe", "Jane Roe"],
            'address': ["Calle 1, Santo Domingo"],
        }

    def test_unexpected_shape(self, client, monkeypatch):
        monkeypatch.setattr(client, "get_json", lambda *a, **kw: {'message': "down"})
        with pytest.raises(ConnectorError):
            OnapiConnector(client).search("Acme")

    @pytest.mark.parametrize("payload", [
        ["not a record"],
        [{'serieExpediente': 2019, 'numeroExpediente': "12-A"}],
    ])
    def test_malformed_items(self, client, monkeypatch, payload):
        monkeypatch.setattr(client, "get_json", lambda *a, **kw: payload)

        with pytest.raises(ConnectorError, match=r"^\[ONAPI\] Malformed") as excinfo:
            OnapiConnector(client).search("Acme")
        assert excinfo.value.domain == "ONAPI"


class TestScj:

    def test_search_splits_parties(self, client, monkeypatch):
        payload = {'data': [
            {'idExpediente': 10, 'noExpediente': "2020-01",
             'involucrados': "Acme, S. A. vs. John Doe, Jane Roe"},
            {'idExpediente': 0, 'involucrados': "ignored"},
        ]}
        monkeypatch.setattr(client, "post_form_json", lambda *a, **kw: payload)
        connector = ScjConnector(client)

        cases = connector.search("John Doe")

        assert [c.no_expediente for c in cases] == ["2020-01"]
        assert extract_categories(connector, cases) == {
            'person_name': ["Acme", "John Doe", "Jane Roe"],
        }

    @pytest.mark.parametrize("payload", [
        {'data': ["not a case"]},
        {'data': [{'idExpediente': "abc"}]},
    ])
    def test_malformed_items(self, client, monkeypatch, payload):
        monkeypatch.setattr(client, "post_form_json", lambda *a, **kw: payload)

        with pytest.raises(ConnectorError, match=r"^\[SCJ\] Malformed") as excinfo:
            ScjConnector(client).search("John Doe")
        assert excinfo.value.domain == "SCJ"

    def test_split_parties(self):
        assert split_parties("Banco X, S.R.L. VS Pedro Pérez") == ["Banco X", "Pedro Pérez"]
        assert split_parties("  ") == []


DGII_FORM = """
<form>
  <input type="hidden" name="__VIEWSTATE" value="abc" />
  <input type="hidden" name="__EVENTVALIDATION" value="def" />
</form>
"""

DGII_DETAIL = """
<table id="cphMain_dvDatosContribuyentes">
  <tr><td>Cédula/RNC</td><td>101-00000-1</td></tr>
  <tr><td>Nombre/Razón Social</td><td>ACME DOMINICANA SRL</td></tr>
  <tr><td>Nombre Comercial</td><td>ACME</td></tr>
  <tr><td>Estado</td><td>ACTIVO</td></tr>
</table>
"""

DGII_GRID = """
<table id="cphMain_gvBuscRazonSocial">
  <tr><th>RNC/Cédula</th><th>Nombre/Razón Social</th><th>Nombre Comercial</th><th>Estado</th></tr>
  <tr><td>101000001</td><td>ACME DOMINICANA SRL</td><td>ACME</td><td>ACTIVO</td></tr>
  <tr><td>101000002</td><td>ACME FOODS SRL</td><td></td><td>ACTIVO</td></tr>
  <tr><td colspan="4">1 2</td></tr>
</table>
"""


class TestDgii:

    def test_search_by_tax_id(self, client, monkeypatch):
        posted = {}

        def fake_post(domain, url, data, headers=None):
            posted.update(data)
            return DGII_DETAIL

        monkeypatch.setattr(client, "get_text", lambda *a, **kw: DGII_FORM)
        monkeypatch.setattr(client, "post_form_text", fake_post)
        connector = DgiiConnector(client)

        records = connector.search("101-00000-1")

        assert posted['ctl00$cphMain$txtRNCCedula'] == "101000001"
        assert posted['__VIEWSTATE'] == "abc"
        assert len(records) == 1
        assert records[0].razon_social == "ACME DOMINICANA SRL"
        assert records[0].estado == "ACTIVO"

    def test_search_by_name(self, client, monkeypatch):
        monkeypatch.setattr(client, "get_text", lambda *a, **kw: DGII_FORM)
        monkeypatch.setattr(client, "post_form_text", lambda *a, **kw: DGII_GRID)
        connector = DgiiConnector(client)

        records = connector.search("Acme")

        assert [r.rnc for r in records] == ["101000001", "101000002"]
        assert extract_categories(connector, records) == {
            'contributor_id': ["101000001", "101000002"],
            'company_name': ["ACME DOMINICANA SRL", "ACME", "ACME FOODS SRL"],
        }

    def test_missing_form_state(self, client, monkeypatch):
        monkeypatch.setattr(client, "get_text", lambda *a, **kw: "<html></html>")
        with pytest.raises(ConnectorError, match="form state"):
            DgiiConnector(client).search("Acme")

    def test_helpers(self):
        assert is_tax_id("101-00000-1")
        assert is_tax_id("001-0000000-1")
        assert not is_tax_id("Acme 123")
        assert label_to_field("Régimen de pagos") == "regimen_pagos"
        assert label_to_field("Cédula/RNC") == "rnc"
        assert label_to_field("Teléfono") is None


PGR_HTML = """
<main>
  <article><h5><a href="https://pgr.gob.do/noticias/acme" title="Caso Acme">Caso Acme</a></h5></article>
  <article><h5><a href="https://pgr.gob.do/noticias/otro">  Otro caso </a></h5></article>
  <article><h5>Sin enlace</h5></article>
</main>
"""


class TestPgr:

    def test_search_parses_articles(self, client, monkeypatch):
        monkeypatch.setattr(client, "get_text", lambda *a, **kw: PGR_HTML)
        connector = PgrConnector(client)

        articles = connector.search("Acme")

        assert [(a.url, a.title) for a in articles] == [
            ("https://pgr.gob.do/noticias/acme", "Caso Acme"),
            ("https://pgr.gob.do/noticias/otro", "Otro caso"),
        ]
        assert extract_categories(connector, articles) == {}


class TestWebSearch:

    def test_build_search_query(self):
        assert build_search_query("Acme", DorkingOptions()) == '"Acme"'
        assert build_search_query(" Acme ", DorkingOptions(site_keywords=("facebook.com", "instagram.com"))) == \
            '"Acme" site:facebook.com OR site:instagram.com'
        assert build_search_query("Acme", DorkingOptions(
            include_keywords=("fraude", "estafa"),
            filetype_keywords=("pdf",),
            in_url_keywords=("status",),
            exclude_keywords=("empleo",),
        )) == '"Acme" intext:(fraude OR estafa) (filetype:pdf) (inurl:status) intext:(-"empleo")'

    def test_social_profiles(self):
        hit = WebSearchResult(url="https://www.instagram.com/acmedo/", title="Acme (@acmedo)",
                              snippet="Contact us at info@acme.do or @AcmeSoporte")
        assert extract_social_profiles(hit) == ["https://www.instagram.com/acmedo/", "@acmedo", "@AcmeSoporte"]

        other = WebSearchResult(url="https://acme.do/contacto")
        assert extract_social_profiles(other) == []

    def test_search(self, client, monkeypatch):
        captured = {}

        def fake_get_json(domain, url, params=None, headers=None):
            captured.update(params)
            return {'items': [
                {'link': "https://x.com/acmedo/status/1", 'title': "Acme on X", 'snippet': "by @acmedo"},
                {'title': "no link"},
            ]}

        monkeypatch.setattr(client, "get_json", fake_get_json)
        connector = WebSearchConnector(client, DomainType.X_SOCIAL_MEDIA,
                                       DorkingOptions(site_keywords=("x.com",)),
                                       WebSearchConfig(api_key="k", search_engine_id="cx"))

        results = connector.search("Acme")

        assert captured['q'] == '"Acme" site:x.com'
        assert captured['key'] == "k"
        assert [r.rank for r in results] == [1]
        assert extract_categories(connector, results) == {
            'social_media': ["https://x.com/acmedo/status/1", "@acmedo"],
        }

    def test_api_error_payload(self, client, monkeypatch):
        monkeypatch.setattr(client, "get_json", lambda *a, **kw: {'error': {'message': "quota exceeded"}})
        connector = WebSearchConnector(client, DomainType.GOOGLE_DORKING, DorkingOptions(),
                                       WebSearchConfig(api_key="k", search_engine_id="cx"))
        with pytest.raises(ConnectorError, match="quota exceeded"):
            connector.search("Acme")

    def test_missing_credentials(self, client, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_CX_KEY", raising=False)
        connector = WebSearchConnector(client, DomainType.FILE_TYPE, DorkingOptions(), WebSearchConfig())
        with pytest.raises(ConnectorError, match="credentials"):
            connector.search("Acme")

    def test_variants(self, client):
        connectors = {c.domain_type: c for c in create_web_search_connectors(client, WebSearchConfig())}

        assert set(connectors) == {"GOOGLE_DORKING", "SOCIAL_MEDIA", "FILE_TYPE", "X_SOCIAL_MEDIA"}
        assert connectors["X_SOCIAL_MEDIA"].accepts("social_media")
        assert not connectors["SOCIAL_MEDIA"].accepts("social_media")
        assert connectors["FILE_TYPE"].retrievable_categories == ["social_media"]


def test_default_registry_capabilities():
    registry = build_default_registry()

    assert registry.domains() == [d.value for d in DomainType]
    seeds = {c.domain_type: c.seed_category for c in registry}
    assert seeds["ONAPI"] == "company_name"
    assert seeds["SCJ"] == "person_name"
    assert seeds["DGII"] == "contributor_id"
    assert seeds["PGR"] == "person_name"
    assert seeds["GOOGLE_DORKING"] == "company_name"
    assert registry.get("ONAPI").accepts("company_name")
    assert not registry.get("ONAPI").accepts("person_name")
