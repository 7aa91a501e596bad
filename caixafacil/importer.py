# caixafacil/importer.py
"""
Statement and aggregator import pipeline.

load -> deduplicate against the account's stored rows -> categorize -> one
bulk insert. The existing keys are read once per run; the unique index in the
database catches anything a concurrent run slipped in meanwhile.
"""
import logging
from datetime import datetime

from caixafacil.core.categorizer import BATCH_SIZE, categorize_transactions
from caixafacil.core.models import ImportResult
from caixafacil.database import fetch_existing_keys, insert_transactions
from caixafacil.errors import StatementError
from caixafacil.loaders.csv_statement import CSVStatementLoader
from caixafacil.utils import dedup_key

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "transferencia"


def deduplicate(transactions, existing_keys):
    """Split *transactions* into ``(staged, skipped)`` using their dedup keys."""
    seen = set(existing_keys)
    staged, skipped = [], []
    for tx in transactions:
        key = dedup_key(tx.date, tx.description, tx.signed_amount)
        if key in seen:
            skipped.append(tx)
            continue
        seen.add(key)
        staged.append(tx)
    return staged, skipped


def to_rows(transactions, bank_account, notes, payment_method=DEFAULT_PAYMENT_METHOD):
    return [
        {
            "date": tx.date,
            "description": tx.description,
            "amount": tx.signed_amount,
            "type": tx.type,
            "category": tx.category,
            "payment_method": payment_method,
            "bank_account": bank_account,
            "notes": notes,
        }
        for tx in transactions
    ]


def run_import(
    transactions,
    bank_account,
    db_path,
    notes,
    client=None,
    batch_size=BATCH_SIZE,
    payment_method=DEFAULT_PAYMENT_METHOD,
    total=None,
    discarded=0,
):
    """Categorize, deduplicate and persist already-parsed *transactions*."""
    transactions = list(transactions)
    existing = fetch_existing_keys(db_path, bank_account)

    # Known rows are dropped before categorizing so re-imports cost no LLM calls
    staged, skipped = deduplicate(transactions, existing)
    if skipped:
        logger.info("Skipping %d transaction(s) already stored for %s", len(skipped), bank_account)

    logger.info("Categorizing %d transaction(s) for %s", len(staged), bank_account)
    staged = categorize_transactions(staged, client=client, batch_size=batch_size)

    imported = insert_transactions(to_rows(staged, bank_account, notes, payment_method), db_path)
    defaulted = sum(1 for tx in staged if tx.was_defaulted)
    if defaulted:
        logger.warning("%d transaction(s) received a default category", defaulted)

    return ImportResult(
        imported=imported,
        total=len(transactions) if total is None else total,
        skipped=len(skipped) + (len(staged) - imported),
        discarded=discarded,
        defaulted=defaulted,
        notes=notes,
        bank_account=bank_account,
        transactions=staged,
    )


def import_statement(
    file_path,
    bank_account,
    db_path,
    config=None,
    client=None,
    overrides=None,
    text=None,
    now=None,
):
    """
    Import a CSV bank statement into *bank_account*.

    When *text* is given it is parsed instead of reading *file_path*, which is
    then only used for its extension (uploads arrive as request bodies).
    """
    config = config or {}
    bank_account = (bank_account or "").strip()
    if not bank_account:
        raise StatementError("Nome da conta bancária é obrigatório.")

    now = now or datetime.now()
    loader = CSVStatementLoader(config, overrides=overrides, today=now.date())
    if text is not None:
        transactions = list(loader.load_text(text, str(file_path)))
    else:
        transactions = list(loader.load(file_path))
    logger.info(
        "Parsed %d of %d row(s) from %s (columns: %s)",
        len(transactions), loader.total, file_path, loader.mapping.as_dict(),
    )

    return run_import(
        transactions,
        bank_account,
        db_path,
        notes=loader.notes(now),
        client=client,
        batch_size=config.get("categorization", {}).get("batch_size", BATCH_SIZE),
        payment_method=config.get("payment_method", DEFAULT_PAYMENT_METHOD),
        total=loader.total,
        discarded=loader.discarded,
    )


def sync_account(loader, source, bank_account, db_path, config=None, client=None):
    """Pull transactions from an aggregator *loader* and import the new ones."""
    config = config or {}
    bank_account = (bank_account or "").strip()
    if not bank_account:
        raise StatementError("Nome da conta bancária é obrigatório.")

    transactions = list(loader.load(source))
    logger.info("Fetched %d transaction(s) from %s", len(transactions), type(loader).__name__)
    return run_import(
        transactions,
        bank_account,
        db_path,
        notes=loader.notes(datetime.now()),
        client=client,
        batch_size=config.get("categorization", {}).get("batch_size", BATCH_SIZE),
        payment_method=config.get("payment_method", DEFAULT_PAYMENT_METHOD),
    )
