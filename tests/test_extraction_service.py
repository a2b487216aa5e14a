"""Tests for document text extraction."""

from unittest.mock import patch

from opsbrief.services import extraction_service
from opsbrief.services.extraction_service import (
    TRUNCATION_MARKER,
    clip_text,
    extract_clipped,
    extract_text,
    is_supported,
)


def test_plain_text_strips_bom():
    text, method = extract_text("\ufeffHello team".encode("utf-8"), "notes.txt")
    assert text == "Hello team"
    assert method == "text"


def test_csv_is_plain_text():
    text, method = extract_text(b"account,issue\nAcme,late\n", "risks.CSV")
    assert "Acme,late" in text
    assert method == "text"


def test_unsupported_extension():
    assert extract_text(b"PK\x03\x04", "deck.pptx") == ("", "unsupported")
    assert not is_supported("deck.pptx")
    assert is_supported("Report.DOCX")


def test_office_files_go_through_markitdown():
    with patch.object(extraction_service, "markitdown_convert", return_value="# Weekly report") as convert:
        text, method = extract_text(b"PK\x03\x04fake", "IT_Operations_Weekly_Report.docx")

    assert (text, method) == ("# Weekly report", "markitdown")
    assert convert.call_args.args[0].endswith(".docx")


def test_markitdown_failure_returns_empty(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"not a workbook")
    with patch.object(extraction_service, "MarkItDown") as markitdown:
        markitdown.return_value.convert.side_effect = ValueError("bad zip")
        assert extraction_service.markitdown_convert(str(path)) == ""


def test_broken_pdf_yields_no_text():
    text, method = extract_text(b"%PDF-1.4 this is not really a pdf", "scan.pdf")
    assert text == ""
    assert method == "pdfminer"


def test_clip_text():
    assert clip_text("  short\r\ntext  ", 100) == ("short\ntext", False)
    clipped, truncated = clip_text("x" * 50, 10)
    assert truncated is True
    assert clipped == "x" * 10 + TRUNCATION_MARKER


def test_extract_clipped():
    text, truncated, method = extract_clipped(b"a" * 20, "big.txt", 5)
    assert text.startswith("aaaaa")
    assert truncated is True
    assert method == "text"
