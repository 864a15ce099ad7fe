import asyncio
import base64
import io

import fitz
import pytest
from docx import Document

from specmatch.core.errors import DocumentParseError, MalformedInputError
from specmatch.services.document_parser import parse_document, parse_files, parse_test_table
from specmatch.services.models import JobFiles


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestParseDocument:

    def test_plain_text_with_bom(self):
        assert parse_document(b"\xef\xbb\xbfREQ-1: must validate input") == "REQ-1: must validate input"

    def test_latin1_fallback(self):
        assert parse_document("Größe limit".encode("latin-1")) == "Größe limit"

    def test_binary_garbage_is_rejected(self):
        with pytest.raises(DocumentParseError):
            parse_document(b"\x01\x02\x00\x03binary")

    def test_docx_paragraphs_and_tables(self):
        doc = Document()
        doc.add_paragraph("REQ-1: must validate input")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "REQ-2"
        table.rows[0].cells[1].text = "must log errors"
        buffer = io.BytesIO()
        doc.save(buffer)

        text = parse_document(buffer.getvalue())
        assert "REQ-1: must validate input" in text
        assert "REQ-2 | must log errors" in text

    def test_pdf(self):
        pdf = fitz.open()
        page = pdf.new_page()
        page.insert_text((72, 72), "REQ-1: must validate input")
        data = pdf.tobytes()
        pdf.close()

        assert "REQ-1: must validate input" in parse_document(data)

    def test_corrupt_docx(self):
        with pytest.raises(DocumentParseError):
            parse_document(b"PK\x03\x04 truncated zip")


class TestParseTestTable:

    def test_rows_are_trimmed_and_blank_rows_skipped(self):
        data = b"\xef\xbb\xbfID , Description\n\n TC-1 ,  validates input \n,\nTC-2,\"login, then logout\"\n"
        assert parse_test_table(data) == [
            ["ID", "Description"],
            ["TC-1", "validates input"],
            ["TC-2", "login, then logout"],
        ]

    def test_header_only(self):
        assert parse_test_table(b"ID,Description\n") == [["ID", "Description"]]

    def test_empty_table(self):
        with pytest.raises(MalformedInputError):
            parse_test_table(b"  \n\n")

    def test_row_wider_than_header_is_rejected(self):
        # Unquoted comma inside a description must not silently lose text
        with pytest.raises(MalformedInputError):
            parse_test_table(b"ID,Description\nTC-1,daily transfer,limit applies\n")


class TestParseFiles:

    def test_decodes_and_parses_every_upload(self):
        files = JobFiles(
            base=b64(b"REQ-1: must validate input"),
            updated=b64(b"REQ-1: must validate all input"),
            tests=b64(b"ID,Description\nTC-1,validates malformed input\n"),
        )
        parsed = asyncio.run(parse_files(files))

        assert parsed.base == "REQ-1: must validate input"
        assert parsed.updated == "REQ-1: must validate all input"
        assert parsed.tests == [["ID", "Description"], ["TC-1", "validates malformed input"]]

    def test_updated_is_optional(self):
        files = JobFiles(base=b64(b"REQ-1"), tests=b64(b"ID\nTC-1\n"))
        assert asyncio.run(parse_files(files)).updated is None

    def test_invalid_base64(self):
        files = JobFiles(base="***", tests=b64(b"ID\nTC-1\n"))
        with pytest.raises(DocumentParseError):
            asyncio.run(parse_files(files))
