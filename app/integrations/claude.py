# app/integrations/claude.py

"""
Claude AI integration for statement extraction.

Used as the last resort for PDF statements whose layout the table and line
parsers cannot read (scanned exports, unusual column layouts). The model
returns structured JSON which the PDF parser normalizes with the same sign
rules as every other statement.
"""

from functools import lru_cache
from typing import Optional
import json
import logging

from anthropic import Anthropic, APIError

from app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Model to use
MODEL = "claude-sonnet-4-20250514"

# Keep prompts bounded; long statements are truncated
MAX_STATEMENT_CHARS = 30000


@lru_cache()
def get_client() -> Anthropic:
    """Client is created on first use so the key is optional at startup."""
    return Anthropic(api_key=settings.anthropic_api_key)


def is_enabled() -> bool:
    return settings.enable_ai_pdf_extraction and bool(settings.anthropic_api_key)


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return text.strip()


def extract_statement(statement_text: str) -> Optional[dict]:
    """
    Ask Claude to read transactions out of raw statement text.

    Returns:
        {
            "bank_name": str | None,
            "account_number": str | None,
            "period_start": "YYYY-MM-DD" | None,
            "period_end": "YYYY-MM-DD" | None,
            "transactions": [
                {"date", "description", "amount", "balance", "reference", "type": "debit" | "credit"}
            ]
        }

    or None when extraction is disabled or the reply cannot be used.
    """
    if not is_enabled() or not statement_text.strip():
        return None

    prompt = f"""You are reading a bank statement that was exported as PDF.
Extract every transaction line. Ignore opening/closing balance lines and page headers.

Respond with JSON only, no commentary, in exactly this shape:
{{"bank_name": "...", "account_number": "...", "period_start": "YYYY-MM-DD", "period_end": "YYYY-MM-DD",
  "transactions": [{{"date": "YYYY-MM-DD", "description": "...", "amount": 0.00, "balance": 0.00,
                    "reference": "...", "type": "debit" | "credit"}}]}}

Use null for anything you cannot find. Amounts are positive numbers; "type" carries the direction.

STATEMENT TEXT:
{statement_text[:MAX_STATEMENT_CHARS]}"""

    try:
        response = get_client().messages.create(
            model=MODEL,
            max_tokens=8000,
            messages=[{"role": "user", "content": prompt}]
        )
        payload = json.loads(_strip_code_fences(response.content[0].text))
    except APIError as e:
        logger.warning("Claude API error during statement extraction: %s", e)
        return None
    except (json.JSONDecodeError, IndexError) as e:
        logger.warning("Claude returned an unreadable statement extraction: %s", e)
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("transactions"), list):
        logger.warning("Claude statement extraction had no transaction list")
        return None

    return payload
