# app/core/parsers/__init__.py

"""
Statement parsing entry points.

detect_file_type -> validate_statement -> parse_statement. Every parser
returns a ParseResult with transactions normalized to negative-outflow /
positive-inflow.
"""

from typing import Optional
import logging
import os

from app.config import get_settings
from app.core.exceptions import FileTooLarge, FileTypeUnsupported
from app.core.parsers.columns import finalize_result
from app.core.parsers.csv_parser import decode_text, parse_csv
from app.core.parsers.excel_parser import parse_excel
from app.core.parsers.pdf_parser import parse_pdf
from app.models import FileType, ParseResult, StatementFile

logger = logging.getLogger(__name__)

EXTENSIONS = {
    ".csv": FileType.CSV,
    ".txt": FileType.CSV,
    ".xlsx": FileType.XLSX,
    ".xls": FileType.XLS,
    ".pdf": FileType.PDF,
}

MIME_TYPES = {
    "text/csv": FileType.CSV,
    "application/csv": FileType.CSV,
    "text/plain": FileType.CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileType.XLSX,
    "application/vnd.ms-excel": FileType.XLS,
    "application/pdf": FileType.PDF,
}

PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def detect_file_type(
    file_name: str,
    content_type: Optional[str] = None,
    content: bytes = b"",
) -> Optional[FileType]:
    """
    Work out the statement family.

    Extension first, then MIME type, then the content signature.
    """
    extension = os.path.splitext(file_name or "")[1].lower()
    if extension in EXTENSIONS:
        return EXTENSIONS[extension]

    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        if mime in MIME_TYPES:
            return MIME_TYPES[mime]

    if content.startswith(PDF_SIGNATURE):
        return FileType.PDF
    if content.startswith(ZIP_SIGNATURE):
        return FileType.XLSX
    if content.startswith(OLE2_SIGNATURE):
        return FileType.XLS

    sample = content[:4096]
    if sample and b"\x00" not in sample:
        text = decode_text(sample)
        if any(delimiter in text for delimiter in (",", ";", "\t", "|")) and "\n" in text:
            return FileType.CSV

    return None


def validate_statement(statement: StatementFile) -> FileType:
    """
    Reject files that cannot be imported at all.

    Raises FileTooLarge / FileTypeUnsupported before any parsing work.
    """
    settings = get_settings()
    max_bytes = settings.max_upload_mb * 1024 * 1024

    if statement.size == 0:
        raise FileTypeUnsupported(
            "File is empty",
            details={"file_name": statement.file_name},
        )

    if statement.size > max_bytes:
        raise FileTooLarge(
            f"File size exceeds {settings.max_upload_mb}MB limit",
            details={"file_name": statement.file_name, "size": statement.size},
        )

    file_type = detect_file_type(statement.file_name, statement.content_type, statement.content)
    if file_type is None:
        raise FileTypeUnsupported(
            "Unsupported file type. Please upload CSV, Excel, or PDF.",
            details={"file_name": statement.file_name, "content_type": statement.content_type},
        )

    return file_type


def parse_statement(
    statement: StatementFile,
    bank_hint: Optional[str] = None,
    file_type: Optional[FileType] = None,
) -> ParseResult:
    """
    Parse a statement file into raw transactions plus metadata.

    Never raises: parser exceptions become a failed ParseResult.
    """
    file_type = file_type or detect_file_type(
        statement.file_name, statement.content_type, statement.content
    )

    try:
        if file_type == FileType.CSV:
            result = parse_csv(statement.content, bank_hint)
        elif file_type in (FileType.XLSX, FileType.XLS):
            result = parse_excel(statement.content, file_type, bank_hint)
        elif file_type == FileType.PDF:
            result = parse_pdf(statement.content, bank_hint)
        else:
            return ParseResult.failed("Unsupported file type")
    except Exception as e:
        logger.exception("Failed to parse %s", statement.file_name)
        return ParseResult.failed(str(e) or f"Failed to parse {file_type.value} file")

    return finalize_result(result)


__all__ = [
    "detect_file_type",
    "validate_statement",
    "parse_statement",
]
