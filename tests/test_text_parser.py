# tests/test_text_parser.py

import pytest

from paper_kb.parsing import text_parser
from paper_kb.parsing.text_parser import extract_pdf_text, parse_plain_text

PDF_TEXT = """Recursive Abstractive Processing for Tree-Organized Retrieval
Parth Sarthi, Salman Abdullah
Retrieval-augmented language models can better adapt to changes in world state.
1 Introduction
Large language models have emerged as transformative tools
showing impressive performance on many tasks.
2 Related Work
Short.
3. Method
We build a tree by recursively clustering and summarizing chunks of text.
References
[1] Lewis et al. Retrieval-augmented generation for knowledge-intensive NLP tasks.
"""


def test_plain_text_split_on_heading_like_lines():
    parsed = parse_plain_text(PDF_TEXT)

    headings = [s.heading for s in parsed.sections]
    # Text before the first heading goes under "Abstract"; "2 Related Work" is too short to keep
    assert headings == ["Abstract", "1 Introduction", "3. Method", "References"]
    assert [s.position for s in parsed.sections] == [0, 1, 2, 3]
    assert all(s.level == 1 for s in parsed.sections)
    assert parsed.sections[1].content == (
        "Large language models have emerged as transformative tools "
        "showing impressive performance on many tasks."
    )
    assert parsed.references == []


def test_long_lines_are_never_headings():
    line = "1 " + "very long sentence " * 10
    parsed = parse_plain_text(line + "\n" + "body text that is long enough to keep")
    assert parsed.sections[0].heading == "Abstract"


def test_empty_text():
    assert parse_plain_text("").sections == []


def test_extract_pdf_text_joins_pages(monkeypatch):
    class FakePage:
        def __init__(self, text):
            self._text = text

        def extract_text(self):
            return self._text

    class FakeReader:
        def __init__(self, stream):
            assert stream.read() == b"%PDF-fake"
            self.pages = [FakePage("page one"), FakePage(None), FakePage("page three")]

    monkeypatch.setattr(text_parser, "PdfReader", FakeReader)

    assert extract_pdf_text(b"%PDF-fake") == "page one\n\npage three"


def test_extract_pdf_text_rejects_garbage():
    with pytest.raises(Exception):
        extract_pdf_text(b"this is not a pdf")
