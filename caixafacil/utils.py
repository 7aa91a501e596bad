# caixafacil/utils.py
from calendar import monthrange
from datetime import date


def dedup_key(tx_date, description, amount):
    """
    Composite key used to spot already-imported rows: ``date|description|amount``.
    The amount is the signed stored value rendered with two decimals.
    """
    return f"{tx_date}|{description}|{float(amount):.2f}"


def add_months(original_date: date, months: int) -> date:
    month_index = original_date.month - 1 + months
    year = original_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(original_date.day, monthrange(year, month)[1])
    return date(year, month, day)


def months_back(today: date, months: int) -> date:
    """First day of the month *months* before *today*'s month."""
    return add_months(today.replace(day=1), -months)


def parse_mapping_overrides(pairs):
    """Turn ``["date=Data Lanç.", "value=Valor"]`` into a dict."""
    overrides = {}
    for pair in pairs or ():
        if "=" not in pair:
            raise ValueError(f"Expected field=Header, got '{pair}'")
        field, header = pair.split("=", 1)
        overrides[field.strip().lower()] = header.strip()
    return overrides
