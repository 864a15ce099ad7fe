"""
document_parser.py
~~~~~~~~~~~~~~~~~~
Raw upload -> text / rows.

- Specification documents: PDF (PyMuPDF), DOCX (python-docx), else plain text
- Test-case tables: CSV read by Polars as all-string columns, no header inference

Parsing is CPU-bound and blocking, so ``parse_files`` hands it to the
threadpool instead of running it on the event loop.
"""
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional

import fitz  # PyMuPDF
import polars as pl
from docx import Document
from fastapi.concurrency import run_in_threadpool

from specmatch.core.errors import DocumentParseError, MalformedInputError
from specmatch.services.models import JobFiles

# ─── Logger ──────────────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK\x03\x04"  # DOCX is a ZIP container
UTF8_BOM = b"\xef\xbb\xbf"


@dataclass
class ParsedFiles:
    base: str
    updated: Optional[str]
    tests: list[list[str]]


# ─── Text ────────────────────────────────────────────────────────────────────

def decode_text(data: bytes) -> str:
    """UTF-8 (BOM aware), falling back to latin-1 which never fails."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("Upload is not valid UTF-8, decoding as latin-1")
        return data.decode("latin-1")


def _extract_pdf(data: bytes) -> str:
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
    except Exception as e:
        raise DocumentParseError(f"Failed to read PDF: {e}") from e
    return "\n".join(pages)


def _extract_docx(data: bytes) -> str:
    try:
        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise DocumentParseError(f"Failed to open DOCX: {e}") from e

    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def parse_document(data: bytes) -> str:
    """Extract plain text from a specification upload."""
    if data.startswith(PDF_MAGIC):
        text = _extract_pdf(data)
    elif data.startswith(ZIP_MAGIC):
        text = _extract_docx(data)
    elif b"\x00" in data:
        raise DocumentParseError("Unsupported binary document: expected PDF, DOCX or plain text")
    else:
        text = decode_text(data)

    logger.debug(f"Extracted {len(text)} characters from {len(data)} byte document")
    return text


# ─── Tables ──────────────────────────────────────────────────────────────────

def parse_test_table(data: bytes) -> list[list[str]]:
    """
    Read a CSV into rows of trimmed strings. The first row is the header.
    Blank rows are skipped.

    Raises:
        MalformedInputError: The table has no rows at all, or a row has
            more cells than the header.
    """
    text = decode_text(data)
    rows: list[list[str]] = []
    if text.strip():
        try:
            df = pl.read_csv(
                io.BytesIO(text.encode("utf-8")),
                has_header=False,
                infer_schema=False,
                raise_if_empty=False,
            )
        except (pl.exceptions.ComputeError, pl.exceptions.NoDataError) as e:
            raise MalformedInputError(f"Test case table could not be parsed: {e}") from e
        for raw_row in df.rows():
            cells = ["" if cell is None else cell.strip() for cell in raw_row]
            if any(cells):
                rows.append(cells)

    if not rows:
        raise MalformedInputError("Test case table is empty")
    return rows


# ─── Job Files ───────────────────────────────────────────────────────────────

def _b64decode(value: str, label: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DocumentParseError(f"Stored {label} file is not valid base64") from e


def _parse_all(files: JobFiles) -> ParsedFiles:
    base = parse_document(_b64decode(files.base, "base"))
    updated = parse_document(_b64decode(files.updated, "updated")) if files.updated else None
    tests = parse_test_table(_b64decode(files.tests, "tests"))
    return ParsedFiles(base=base, updated=updated, tests=tests)


async def parse_files(files: JobFiles) -> ParsedFiles:
    return await run_in_threadpool(_parse_all, files)
