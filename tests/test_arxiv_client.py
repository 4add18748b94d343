# tests/test_arxiv_client.py

from __future__ import annotations

import pytest
import requests
from conftest import FakeResponse, FakeSession

from paper_kb.arxiv.client import (
    ArxivClient,
    CatalogError,
    is_arxiv_id,
    normalize_arxiv_id,
    strip_version,
)

ATOM_ENTRY = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title>ArXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2401.18059v1</id>
    <updated>2024-01-31T18:30:35Z</updated>
    <published>2024-01-31T18:30:35Z</published>
    <title>RAPTOR: Recursive Abstractive Processing
      for Tree-Organized Retrieval</title>
    <summary>  Retrieval-augmented language models can better adapt
  to changes in world state.
</summary>
    <author><name>Parth Sarthi</name></author>
    <author><name>Salman Abdullah</name></author>
    <category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>
"""

ATOM_ERROR = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_9999.99999</id>
    <title>Error</title>
    <summary>incorrect id format for 9999.99999</summary>
  </entry>
</feed>
"""

ATOM_SEARCH = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry><id>http://arxiv.org/abs/2401.18059v1</id><title>A</title></entry>
  <entry><id>http://arxiv.org/abs/2005.11401v4</id><title>B</title></entry>
  <entry><id>http://arxiv.org/abs/2401.18059v2</id><title>A again</title></entry>
</feed>
"""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2401.15884", "2401.15884"),
        ("2401.15884v3", "2401.15884"),
        ("arXiv:2401.15884v2", "2401.15884"),
        (" https://arxiv.org/abs/2401.15884 ", "2401.15884"),
        ("https://arxiv.org/pdf/2401.15884v1.pdf", "2401.15884"),
        ("https://ar5iv.labs.arxiv.org/html/2401.15884", "2401.15884"),
        ("not-an-id", "not-an-id"),
    ],
)
def test_normalize_arxiv_id(raw, expected):
    assert normalize_arxiv_id(raw) == expected


def test_id_helpers():
    assert is_arxiv_id("2401.15884v2")
    assert is_arxiv_id("2401.1588")
    assert not is_arxiv_id("24011.5884")
    assert strip_version("2401.15884v12") == "2401.15884"


def test_fetch_metadata_parses_atom_entry(kb_settings):
    session = FakeSession([FakeResponse(text=ATOM_ENTRY)])
    client = ArxivClient(kb_settings, session=session)

    meta = client.fetch_metadata("2401.18059")

    assert meta.title == "RAPTOR: Recursive Abstractive Processing for Tree-Organized Retrieval"
    assert meta.authors == ["Parth Sarthi", "Salman Abdullah"]
    assert meta.abstract == "Retrieval-augmented language models can better adapt to changes in world state."
    assert meta.categories == ["cs.CL", "cs.LG"]
    assert meta.published_at == "2024-01-31T18:30:35Z"

    assert session.calls[0]["url"] == kb_settings.ARXIV_API_URL
    assert session.calls[0]["params"] == {"id_list": "2401.18059"}


def test_fetch_metadata_error_entry_raises(kb_settings):
    client = ArxivClient(kb_settings, session=FakeSession([FakeResponse(text=ATOM_ERROR)]))
    with pytest.raises(CatalogError, match="No entry found"):
        client.fetch_metadata("9999.99999")


def test_fetch_metadata_http_failures_raise(kb_settings):
    client = ArxivClient(
        kb_settings,
        session=FakeSession(
            [
                FakeResponse(status_code=503),
                requests.exceptions.ConnectionError("boom"),
            ]
        ),
    )

    with pytest.raises(CatalogError) as exc_info:
        client.fetch_metadata("2401.18059")
    assert exc_info.value.status_code == 503

    with pytest.raises(CatalogError, match="Error contacting arXiv API"):
        client.fetch_metadata("2401.18059")


def test_search_returns_versionless_unique_ids(kb_settings):
    session = FakeSession([FakeResponse(text=ATOM_SEARCH)])
    client = ArxivClient(kb_settings, session=session)

    assert client.search("retrieval trees", max_results=5) == ["2401.18059", "2005.11401"]
    assert session.calls[0]["params"] == {"search_query": "all:retrieval trees", "max_results": 5}


def test_fetch_html_requires_html_content_type(kb_settings):
    session = FakeSession(
        [
            FakeResponse(text="<html>ok</html>", headers={"content-type": "text/html; charset=utf-8"}),
            FakeResponse(text="%PDF", headers={"content-type": "application/pdf"}),
            FakeResponse(status_code=404),
            requests.exceptions.Timeout("slow"),
        ]
    )
    client = ArxivClient(kb_settings, session=session)

    assert client.fetch_html("2401.18059") == "<html>ok</html>"
    assert session.calls[0]["url"] == f"{kb_settings.ARXIV_HTML_URL}/2401.18059"
    assert client.fetch_html("2401.18059") is None
    assert client.fetch_html("2401.18059") is None
    assert client.fetch_html("2401.18059") is None


def test_fetch_pdf(kb_settings):
    session = FakeSession([FakeResponse(content=b"%PDF-1.5"), FakeResponse(status_code=404)])
    client = ArxivClient(kb_settings, session=session)

    assert client.fetch_pdf("2401.18059") == b"%PDF-1.5"
    assert session.calls[0]["url"] == f"{kb_settings.ARXIV_PDF_URL}/2401.18059"
    assert client.fetch_pdf("2401.18059") is None
