"""
file_validation.py
~~~~~~~~~~~~~~~~~~
Upload checks: size limit, plus content validation by magic number
(signature) rather than trusting the extension.
"""
import logging
import os
import re

from fastapi import HTTPException, UploadFile

from specmatch.core.config import settings

logger = logging.getLogger(__name__)

# Magic Numbers (File Signatures)
SIGNATURES = {
    "pdf": b"%PDF",
    # Office Open XML (docx) is technically a ZIP archive
    "docx": b"\x50\x4B\x03\x04",
}

DOCUMENT_EXTENSIONS = (".pdf", ".docx", ".txt", ".md")
TABLE_EXTENSIONS = (".csv",)

READ_CHUNK_SIZE = 64 * 1024


def safe_filename(filename: str | None, fallback: str) -> str:
    """Strip directories and anything outside [A-Za-z0-9_.-]."""
    base_name = os.path.basename(filename or "")
    cleaned = re.sub(r"[^a-zA-Z0-9_.-]", "_", base_name)
    return cleaned or fallback


def _check_text(filename: str, header: bytes) -> None:
    # Text formats have no magic number; NUL bytes are the tell for binary content
    if b"\x00" in header:
        logger.warning(f"Validation failed: {filename} contains null bytes, likely binary.")
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file content. {filename} appears to be binary.",
        )


def validate_signature(filename: str, header: bytes, allowed: tuple[str, ...]) -> None:
    """
    Validate that *header* (the first bytes of the upload) matches the extension.
    Raises HTTPException(400) if the extension is not allowed or the content does not match.
    """
    name = filename.lower()
    if not name.endswith(allowed):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type for {filename}. Allowed: {', '.join(allowed)}",
        )

    if name.endswith(".pdf"):
        if not header.startswith(SIGNATURES["pdf"]):
            logger.warning(f"Validation failed: {filename} claims to be PDF but lacks %PDF signature.")
            raise HTTPException(
                status_code=400,
                detail="Invalid file content. Extension says .pdf but content does not match (PDF signature missing).",
            )
    elif name.endswith(".docx"):
        if not header.startswith(SIGNATURES["docx"]):
            logger.warning(f"Validation failed: {filename} claims to be DOCX but lacks ZIP signature.")
            raise HTTPException(
                status_code=400,
                detail="Invalid file content. Extension says .docx but content does not match (ZIP signature missing).",
            )
    else:
        _check_text(filename, header)


async def read_validated_upload(file: UploadFile, allowed: tuple[str, ...]) -> bytes:
    """Read an upload in chunks, enforcing MAX_UPLOAD_SIZE_MB, then validate its signature."""
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    chunks = []
    size = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise HTTPException(413, f"File too large. Max size: {settings.MAX_UPLOAD_SIZE_MB}MB")
        chunks.append(chunk)

    data = b"".join(chunks)
    validate_signature(file.filename or "", data[:8], allowed)
    return data
