# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Turns uploaded document content into plain text for the extraction strategies.
"""

import logging
from typing import List, Optional, Tuple, Union

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
PDF_MIME_TYPE = "application/pdf"

# Tried in order when decoding non-PDF bytes
TEXT_ENCODINGS = ("utf-8", "cp1252")


def is_pdf(content: bytes, mime_type: Optional[str] = None) -> bool:
    """Whether content should be read as a PDF."""
    if mime_type and mime_type.lower() == PDF_MIME_TYPE:
        return True
    return content.lstrip()[:4] == PDF_MAGIC


def _read_pdf_text(content: bytes) -> str:
    pdf_document = fitz.open(stream=content, filetype="pdf")
    try:
        return "\n".join(page.get_text() for page in pdf_document)
    finally:
        pdf_document.close()


def _decode_text(content: bytes) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("utf-8", errors="replace")


def load_document_text(
    content: Union[bytes, str, None], mime_type: Optional[str] = None
) -> Tuple[str, List[str]]:
    """
    Convert raw document content to text.

    Unreadable content degrades to empty text with a diagnostic, this function
    never raises.

    Args:
        content: Raw bytes or already decoded text
        mime_type: Optional MIME type declared at upload

    Returns:
        Tuple of (text, diagnostics)
    """
    diagnostics: List[str] = []

    if content is None:
        diagnostics.append("Document has no content")
        return "", diagnostics

    if isinstance(content, str):
        return content, diagnostics

    if not content:
        diagnostics.append("Document has no content")
        return "", diagnostics

    if is_pdf(content, mime_type):
        try:
            text = _read_pdf_text(content)
        except Exception as e:
            logger.warning(f"Unable to read PDF text layer: {e}")
            diagnostics.append(f"Unable to read PDF: {e}")
            return "", diagnostics
        if not text.strip():
            diagnostics.append("PDF has no text layer (scanned document?)")
        logger.debug(f"Read {len(text)} characters from PDF")
        return text, diagnostics

    return _decode_text(content), diagnostics
