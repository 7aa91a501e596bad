# caixafacil/core/normalizer.py
"""
Best-effort parsing of Brazilian-formatted statement cells.

Neither helper raises on malformed input: dates fall back to today (or to
``None`` in strict mode) and values fall back to ``0.0``. Callers re-validate
the resulting rows before accepting them.
"""
import logging
import re
from datetime import date

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_SEP = re.compile(r"[/\-]")
_TIME_SUFFIX = re.compile(r"[\sT]+\d{1,2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?$")
_CURRENCY = re.compile(r"[R$\s]")
_NUMBER_PREFIX = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)")


def parse_date(raw, today=None, strict=False):
    """Return *raw* as ``YYYY-MM-DD``, or ``None`` when the cell is empty."""
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    # "05/03/2024 10:30", "2024-03-05T10:30:00Z"
    text = _TIME_SUFFIX.sub("", text)

    if _ISO_DATE.match(text) and _is_calendar_date(text):
        return text

    parts = _DATE_SEP.split(text)
    if len(parts) == 3:
        day, month, year = (p.strip() for p in parts)
        if len(year) == 2:
            year = "20" + year
        iso = f"{year}-{month.zfill(2)}-{day.zfill(2)}"
        if _is_calendar_date(iso):
            return iso

    if strict:
        logger.warning("Unparseable date %r; row will be discarded", text)
        return None
    fallback = (today or date.today()).isoformat()
    logger.warning("Unparseable date %r; using %s", text, fallback)
    return fallback


def _is_calendar_date(iso):
    try:
        date.fromisoformat(iso)
    except ValueError:
        return False
    return True


def parse_value(raw):
    """Convert ``"R$ 1.234,56"`` style strings to ``1234.56``."""
    if raw is None:
        return 0.0
    text = _CURRENCY.sub("", str(raw))
    # '.' is a thousands separator, ',' the decimal one
    text = text.replace(".", "").replace(",", ".", 1)
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0
