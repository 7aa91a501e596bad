import sqlite3
import re
from pathlib import Path
from datetime import date, datetime
from typing import Dict, Iterable, List, Set

from caixafacil.core.models import EXPENSE, INCOME
from caixafacil.errors import PersistenceError
from caixafacil.utils import dedup_key, months_back

_IMPORT_DATE = re.compile(r"(\d{2}/\d{2}/\d{4})")

_COLUMNS = (
    "date",
    "description",
    "amount",
    "type",
    "category",
    "payment_method",
    "bank_account",
    "notes",
    "created_at",
)


def _init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY,
            date TEXT NOT NULL,
            description TEXT NOT NULL,
            amount REAL NOT NULL,
            type TEXT NOT NULL,
            category TEXT,
            payment_method TEXT,
            bank_account TEXT NOT NULL,
            notes TEXT,
            created_at TEXT NOT NULL,
            UNIQUE(bank_account, date, description, amount)
        )
        """
    )
    conn.commit()


def _connect(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    _init_db(conn)
    return conn


def fetch_existing_keys(db_path: str, bank_account: str) -> Set[str]:
    """Return the dedup keys of every transaction stored for *bank_account*."""
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT date, description, amount FROM transactions WHERE bank_account = ?",
            (bank_account,),
        ).fetchall()
    finally:
        conn.close()
    return {dedup_key(r[0], r[1], r[2]) for r in rows}


def insert_transactions(rows: Iterable[dict], db_path: str) -> int:
    """Bulk insert *rows* in a single transaction and return how many were stored.

    Rows that collide with the unique (account, date, description, amount)
    index are ignored. Any other database error rolls back the whole batch and
    raises PersistenceError.
    """
    rows = list(rows)
    if not rows:
        return 0

    created_at = datetime.now().isoformat(timespec="seconds")
    values = [
        (
            r["date"],
            r["description"],
            round(float(r["amount"]), 2),
            r["type"],
            r.get("category"),
            r.get("payment_method"),
            r["bank_account"],
            r.get("notes"),
            r.get("created_at") or created_at,
        )
        for r in rows
    ]
    try:
        conn = _connect(db_path)
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not open database {db_path}: {e}") from e
    try:
        before = conn.total_changes
        with conn:
            conn.executemany(
                f"""
                INSERT OR IGNORE INTO transactions ({", ".join(_COLUMNS)})
                VALUES ({", ".join("?" for _ in _COLUMNS)})
                """,
                values,
            )
        return conn.total_changes - before
    except sqlite3.Error as e:
        raise PersistenceError(f"Bulk insert failed: {e}") from e
    finally:
        conn.close()


def _build_filters(
    start_date: date | None = None,
    end_date: date | None = None,
    bank_account: str | None = None,
    tx_type: str | None = None,
    category: str | None = None,
) -> tuple[str, list]:
    conditions: list[str] = []
    params: list = []
    if start_date:
        conditions.append("date >= ?")
        params.append(start_date.isoformat())
    if end_date:
        conditions.append("date <= ?")
        params.append(end_date.isoformat())
    if bank_account:
        conditions.append("bank_account = ?")
        params.append(bank_account)
    if tx_type:
        conditions.append("type = ?")
        params.append(tx_type)
    if category:
        conditions.append("category = ?")
        params.append(category)
    where = " WHERE " + " AND ".join(conditions) if conditions else ""
    return where, params


def query_transactions(
    db_path: str,
    start_date: date | None = None,
    end_date: date | None = None,
    bank_account: str | None = None,
    tx_type: str | None = None,
    category: str | None = None,
    limit: int | None = None,
) -> List[Dict[str, object]]:
    """Return stored transactions as dicts, newest first."""

    conn = _connect(db_path)
    try:
        where, params = _build_filters(start_date, end_date, bank_account, tx_type, category)
        query = f"SELECT id, {', '.join(_COLUMNS)} FROM transactions{where} ORDER BY date DESC, id DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()
    keys = ("id",) + _COLUMNS
    return [dict(zip(keys, row)) for row in rows]


def list_accounts(db_path: str) -> List[str]:
    conn = _connect(db_path)
    try:
        rows = conn.execute(
            "SELECT DISTINCT bank_account FROM transactions ORDER BY bank_account"
        ).fetchall()
    finally:
        conn.close()
    return [r[0] for r in rows]


def list_imports(db_path: str) -> List[Dict[str, object]]:
    """Group imported transactions by their provenance note, newest import first."""

    conn = _connect(db_path)
    try:
        rows = conn.execute(
            """
            SELECT notes, bank_account, COUNT(*), MIN(created_at), SUM(amount)
            FROM transactions
            WHERE notes LIKE 'Importado%'
            GROUP BY notes, bank_account
            ORDER BY MIN(created_at) DESC, notes DESC
            """
        ).fetchall()
    finally:
        conn.close()

    imports = []
    for notes, account, count, created_at, total in rows:
        match = _IMPORT_DATE.search(notes)
        imports.append(
            {
                "notes": notes,
                "bank_account": account or "Sem conta",
                "transactions": int(count),
                "created_at": created_at,
                "import_date": match.group(1) if match else "Data desconhecida",
                "net": float(total or 0.0),
            }
        )
    return imports


def delete_import(db_path: str, notes: str, bank_account: str | None = None) -> int:
    """Delete every transaction recorded with *notes* (optionally for one account)."""

    conn = _connect(db_path)
    try:
        where, params = _build_filters(bank_account=bank_account)
        where = (where + " AND" if where else " WHERE") + " notes = ?"
        params.append(notes)
        with conn:
            cur = conn.execute(f"DELETE FROM transactions{where}", params)
        return cur.rowcount
    finally:
        conn.close()


def summarize_by_month(
    db_path: str,
    start_date: date | None = None,
    end_date: date | None = None,
    bank_account: str | None = None,
) -> List[Dict[str, object]]:
    """Income, expense and net cash flow per ``YYYY-MM``."""

    conn = _connect(db_path)
    try:
        where, params = _build_filters(start_date, end_date, bank_account)
        rows = conn.execute(
            f"""
            SELECT strftime('%Y-%m', date) AS period,
                   COALESCE(SUM(CASE WHEN type = '{INCOME}' THEN amount END), 0.0),
                   COALESCE(SUM(CASE WHEN type = '{EXPENSE}' THEN -amount END), 0.0),
                   COUNT(*)
            FROM transactions
            {where}
            GROUP BY period
            ORDER BY period
            """,
            params,
        ).fetchall()
    finally:
        conn.close()
    return [
        {
            "period": row[0],
            "income": float(row[1]),
            "expense": float(row[2]),
            "net": float(row[1]) - float(row[2]),
            "transactions": int(row[3]),
        }
        for row in rows
    ]


def summarize_by_category(
    db_path: str,
    tx_type: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    bank_account: str | None = None,
) -> List[Dict[str, object]]:
    """Absolute totals grouped by category, largest first."""

    conn = _connect(db_path)
    try:
        where, params = _build_filters(start_date, end_date, bank_account, tx_type)
        rows = conn.execute(
            f"""
            SELECT COALESCE(category, 'sem_categoria') AS category,
                   type,
                   SUM(ABS(amount)) AS total,
                   COUNT(*) AS count
            FROM transactions
            {where}
            GROUP BY COALESCE(category, 'sem_categoria'), type
            ORDER BY total DESC
            """,
            params,
        ).fetchall()
    finally:
        conn.close()
    return [
        {
            "category": row[0],
            "type": row[1],
            "total": float(row[2] or 0.0),
            "transactions": int(row[3]),
        }
        for row in rows
    ]


def account_balance(db_path: str, bank_account: str | None = None) -> float:
    """Sum of signed amounts, i.e. the cash position implied by stored rows."""

    conn = _connect(db_path)
    try:
        where, params = _build_filters(bank_account=bank_account)
        row = conn.execute(
            f"SELECT COALESCE(SUM(amount), 0.0) FROM transactions{where}", params
        ).fetchone()
    finally:
        conn.close()
    return round(float(row[0] or 0.0), 2)


def average_monthly_income(
    db_path: str,
    today: date | None = None,
    months: int = 3,
    bank_account: str | None = None,
) -> float:
    """Income since the first day of the month *months* back, divided by *months*."""

    today = today or date.today()
    start = months_back(today, months)
    conn = _connect(db_path)
    try:
        where, params = _build_filters(start, None, bank_account, INCOME)
        row = conn.execute(
            f"SELECT COALESCE(SUM(amount), 0.0) FROM transactions{where}", params
        ).fetchone()
    finally:
        conn.close()
    return round(float(row[0] or 0.0) / months, 2) if months else 0.0
