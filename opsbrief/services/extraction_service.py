import logging
import os
import tempfile
from typing import Optional, Tuple

from markitdown import MarkItDown
from pdfminer.high_level import extract_text as pdf_extract_text

logger = logging.getLogger("opsbrief.extraction")

__all__ = [
    "SUPPORTED_EXTS",
    "file_extension",
    "is_supported",
    "clip_text",
    "extract_text",
    "extract_clipped",
]

# Formats we are willing to download and summarise. Everything else is
# reported as found-but-unreadable.
SUPPORTED_EXTS = {".txt", ".csv", ".docx", ".xlsx", ".pdf"}

TRUNCATION_MARKER = "\n...(truncated)"


def file_extension(name: str) -> str:
    return (os.path.splitext(name or "")[1] or "").lower()


def is_supported(name: str) -> bool:
    return file_extension(name) in SUPPORTED_EXTS


def clip_text(text: str, max_chars: int) -> Tuple[str, bool]:
    """Normalise newlines, trim, and cap at ``max_chars``. Returns (text, truncated)."""
    cleaned = (text or "").replace("\r\n", "\n").strip()
    if len(cleaned) <= max_chars:
        return cleaned, False
    return cleaned[:max_chars] + TRUNCATION_MARKER, True


def markitdown_convert(path: str) -> str:
    """
    Convert Office files (docx/xlsx) to markdown text using MarkItDown.
    Hardened to never raise upstream: returns "" on conversion failures.
    """
    try:
        out = MarkItDown().convert(path)
    except Exception as e:
        logger.info("MarkItDown conversion failed (handled): %s", type(e).__name__)
        return ""

    # Normalize across MarkItDown versions
    if hasattr(out, "text_content"):
        return out.text_content or ""
    if isinstance(out, str):
        return out
    return getattr(out, "markdown", "") or ""


def pdfminer_convert(path: str) -> str:
    """Text layer of a PDF; "" for scanned or broken files."""
    try:
        return pdf_extract_text(path) or ""
    except Exception as e:
        logger.info("pdfminer failed (handled): %s", type(e).__name__)
        return ""


def extract_text(data: bytes, filename: str) -> Tuple[str, str]:
    """
    Extract plain text from downloaded file bytes.

    Always returns: (text, method)
    method in {"text", "markitdown", "pdfminer", "unsupported"}

    File contents are processed in a temporary directory that is removed on
    return, and never logged.
    """
    ext = file_extension(filename)

    if ext in {".txt", ".csv"}:
        return data.decode("utf-8-sig", errors="ignore"), "text"

    if ext not in SUPPORTED_EXTS:
        return "", "unsupported"

    with tempfile.TemporaryDirectory(prefix="opsbrief_extract_") as tmpdir:
        path = os.path.join(tmpdir, f"document{ext}")
        with open(path, "wb") as f:
            f.write(data)

        if ext == ".pdf":
            text = pdfminer_convert(path)
            method = "pdfminer"
        else:
            text = markitdown_convert(path)
            method = "markitdown"

    logger.info("extract_text: %s via %s; chars=%s", ext, method, len(text))
    return text, method


def extract_clipped(data: bytes, filename: str, max_chars: int) -> Tuple[str, bool, Optional[str]]:
    """``extract_text`` followed by ``clip_text``; returns (text, truncated, method)."""
    text, method = extract_text(data, filename)
    clipped, truncated = clip_text(text, max_chars)
    return clipped, truncated, method
