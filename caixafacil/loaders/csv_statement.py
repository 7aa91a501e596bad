# caixafacil/loaders/csv_statement.py

import csv
import io
import logging
import os
import re
from dataclasses import dataclass, fields
from datetime import datetime

import pandas as pd

from caixafacil.core.models import EXPENSE, INCOME, Transaction
from caixafacil.core.normalizer import parse_date, parse_value
from caixafacil.errors import StatementError
from caixafacil.loaders.base import BaseLoader

logger = logging.getLogger(__name__)

FIELD_KEYWORDS = {
    "date": ("data", "date", "dt"),
    "description": ("descri", "description", "historico", "hist"),
    "value": ("valor", "value", "amount", "r$"),
    "type": ("tipo", "type", "natureza"),
    "supplier": ("fornecedor", "supplier", "destinatario"),
}
MANDATORY_FIELDS = ("date", "description", "value")

_INCOME_TYPE_WORDS = ("créd", "cred", "receb")
_EXPENSE_TYPE_WORDS = ("déb", "deb", "pag")
_INCOME_DESC_WORDS = ("receb", "credito", "crédito", "deposit", "entrada")

_DATE_LIKE = re.compile(r"^\d{1,4}[/\-]\d{1,2}[/\-]\d{2,4}$")


@dataclass
class ColumnMapping:
    date: str = None
    description: str = None
    value: str = None
    type: str = None
    supplier: str = None

    def missing(self):
        return [name for name in MANDATORY_FIELDS if getattr(self, name) is None]

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _sample_agrees(field, samples):
    values = [s for s in samples if s]
    if not values:
        return False
    if field == "date":
        hits = sum(1 for v in values if _DATE_LIKE.match(v.strip()))
    elif field == "value":
        hits = sum(1 for v in values if parse_value(v) != 0)
    else:
        return False
    return hits * 2 > len(values)


def _score(field, header, samples):
    low = header.lower().strip()
    keywords = FIELD_KEYWORDS[field]
    hits = sum(1 for kw in keywords if kw in low)
    if not hits:
        return 0
    score = hits
    if low in keywords:
        score += 2
    if samples and _sample_agrees(field, samples):
        score += 1
    return score


def detect_columns(headers, rows=None, overrides=None):
    """
    Map semantic fields to header names.

    Every header containing one of the field's keywords is a candidate; the
    best scored candidate wins and ties go to the leftmost header. A header is
    used for one field only. *overrides* (field -> header) skip detection.
    """
    rows = rows or []
    overrides = overrides or {}
    mapping = ColumnMapping()
    used = set()

    for field, header in overrides.items():
        if field not in FIELD_KEYWORDS:
            raise StatementError(f"Campo desconhecido no mapeamento: '{field}'")
        if header not in headers:
            raise StatementError(f"Coluna '{header}' não existe no arquivo.")
        setattr(mapping, field, header)
        used.add(header)

    for field in FIELD_KEYWORDS:
        if field in overrides:
            continue
        best, best_score = None, 0
        for header in headers:
            if header in used:
                continue
            samples = [row.get(header, "") for row in rows[:20]]
            score = _score(field, header, samples)
            if score > best_score:
                best, best_score = header, score
        if best is not None:
            setattr(mapping, field, best)
            used.add(best)

    logger.debug("Detected columns: %s", mapping.as_dict())
    return mapping


def detect_type(type_str, value, description):
    if not type_str:
        if value > 0:
            return INCOME
        if value < 0:
            return EXPENSE
        desc = (description or "").lower()
        if any(word in desc for word in _INCOME_DESC_WORDS):
            return INCOME
        return EXPENSE

    type_str = type_str.lower()
    if any(word in type_str for word in _INCOME_TYPE_WORDS):
        return INCOME
    if any(word in type_str for word in _EXPENSE_TYPE_WORDS):
        return EXPENSE
    return EXPENSE if value < 0 else INCOME


def classify_row(record, mapping, today=None, strict_dates=False):
    """Return a Transaction for *record*, or None when the row is not usable."""
    description = (record.get(mapping.description) or "").strip()
    supplier = (record.get(mapping.supplier) or "").strip() if mapping.supplier else ""
    if supplier:
        description = f"{description} - {supplier}".strip()
    type_str = (record.get(mapping.type) or "").strip() if mapping.type else ""

    tx_date = parse_date(record.get(mapping.date), today=today, strict=strict_dates)
    value = parse_value(record.get(mapping.value))
    tx = Transaction(
        date=tx_date,
        description=description,
        amount=abs(value),
        type=detect_type(type_str, value, description),
    )

    if not tx.date or not tx.description or tx.amount == 0:
        logger.warning("Skipping invalid row: %s", tx)
        return None
    return tx


def read_statement(buffer):
    """
    Return ``(headers, records)`` from a CSV text buffer.

    Cells are read by position: cells beyond the header width are dropped and
    short rows are padded with empty strings.
    """
    text = buffer.read().lstrip("\ufeff")
    if not text.strip():
        raise StatementError("Nenhuma transação encontrada no arquivo CSV.")
    first_line = text.split("\n", 1)[0]
    sep = ";" if first_line.count(";") > first_line.count(",") else ","
    width = len(next(csv.reader([first_line], delimiter=sep)))
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            index_col=False,
            engine="python",
            usecols=range(width),
        )
    except pd.errors.EmptyDataError:
        raise StatementError("Nenhuma transação encontrada no arquivo CSV.")
    except pd.errors.ParserError as e:
        raise StatementError(f"Não foi possível ler o arquivo CSV: {e}")

    df = df.fillna("")
    df.columns = [str(c).strip() for c in df.columns]
    headers = list(df.columns)
    records = [
        {h: str(v).strip() for h, v in row.items()}
        for row in df.to_dict(orient="records")
    ]
    records = [r for r in records if any(r.values())]
    return headers, records


class CSVStatementLoader(BaseLoader):
    """
    Loader for bank statements exported as CSV, with any column layout that
    has a date, a description and a value column.

    After ``load`` is exhausted, ``total`` holds the number of data rows in the
    file and ``discarded`` the rows that were dropped as invalid.
    """
    source_label = "Importado do extrato CSV"

    def __init__(self, config=None, overrides=None, today=None):
        super().__init__(config)
        self.overrides = overrides or {}
        self.today = today
        self.strict_dates = bool(self.config.get("strict_dates", False))
        self.total = 0
        self.discarded = 0
        self.mapping = None

    def notes(self, now):
        return f"{self.source_label} em {now.strftime('%d/%m/%Y %H:%M:%S')}"

    def load(self, file_path):
        ext = os.path.splitext(str(file_path))[1].lower()
        if ext != ".csv":
            raise StatementError(
                "Apenas arquivos CSV são suportados no momento. "
                "Por favor, exporte seu extrato em formato CSV."
            )
        try:
            with open(file_path, newline="", encoding="utf-8-sig") as f:
                text = f.read()
        except UnicodeDecodeError:
            raise StatementError("O arquivo deve estar em UTF-8.")
        yield from self._load(io.StringIO(text))

    def load_text(self, text, filename="extrato.csv"):
        if os.path.splitext(filename)[1].lower() != ".csv":
            raise StatementError("Apenas arquivos CSV são suportados no momento.")
        yield from self._load(io.StringIO(text))

    def _load(self, buffer):
        headers, records = read_statement(buffer)
        self.total = len(records)
        self.discarded = 0
        if not records:
            raise StatementError("Nenhuma transação encontrada no arquivo CSV.")

        self.mapping = detect_columns(headers, records, self.overrides)
        missing = self.mapping.missing()
        if missing:
            raise StatementError(
                "Não foi possível identificar as colunas necessárias "
                f"(Data, Descrição, Valor); faltando: {', '.join(missing)}. "
                "Verifique se o arquivo está no formato correto."
            )

        today = self.today or datetime.now().date()
        valid = []
        for record in records:
            tx = classify_row(record, self.mapping, today=today, strict_dates=self.strict_dates)
            if tx is None:
                self.discarded += 1
                continue
            valid.append(tx)

        if not valid:
            raise StatementError("Nenhuma transação válida encontrada após processar o arquivo.")
        yield from valid
