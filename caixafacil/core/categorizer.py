# caixafacil/core/categorizer.py
"""
LLM-backed categorization of parsed transactions.

Transactions are sent in fixed-size batches, one request at a time, and the
answers are concatenated in submission order so ``result[i]`` always belongs
to ``transactions[i]``. A batch that fails for any reason is labelled with the
default category of each row's type and flagged ``was_defaulted``.
"""
import json
import logging
import re

from caixafacil.core.models import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    CategorizedTransaction,
    categories_for,
    default_category,
)
from caixafacil.errors import CategorizationError

logger = logging.getLogger(__name__)

BATCH_SIZE = 30

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


def batched(items, size):
    """Yield consecutive slices of *items* of at most *size* elements."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _vocabulary(categories):
    return "\n".join(f"- {code}: {label}" for code, label in categories.items())


def build_messages(batch):
    lines = [
        f'{idx}. "{tx.description}" | {tx.type} | R$ {tx.amount:.2f}'
        for idx, tx in enumerate(batch)
    ]
    prompt = (
        "Categorize cada transação abaixo em UMA categoria.\n\n"
        "**Para RECEITAS (income):**\n"
        f"{_vocabulary(INCOME_CATEGORIES)}\n\n"
        "**Para DESPESAS (expense):**\n"
        f"{_vocabulary(EXPENSE_CATEGORIES)}\n\n"
        "**Transações:**\n"
        + "\n".join(lines)
        + "\n\nRetorne APENAS um objeto JSON no formato "
        '{"categories": [{"idx": 0, "category": "..."}, ...]} '
        "com uma entrada por transação, usando o mesmo idx da lista."
    )
    return [
        {
            "role": "system",
            "content": "Você é um especialista em categorização financeira para empresas brasileiras.",
        },
        {"role": "user", "content": prompt},
    ]


def _decode(response):
    text = _FENCE.sub("", (response or "").strip())
    start = min((i for i in (text.find("{"), text.find("[")) if i >= 0), default=-1)
    if start < 0:
        raise CategorizationError(f"No JSON in categorization response: {response!r}")
    try:
        decoded = json.loads(text[start:])
    except json.JSONDecodeError:
        # trailing prose after the JSON document
        try:
            decoded, _ = json.JSONDecoder().raw_decode(text[start:])
        except json.JSONDecodeError as e:
            raise CategorizationError(f"Invalid JSON in categorization response: {e}") from e
    if isinstance(decoded, dict):
        decoded = decoded.get("categories")
    if not isinstance(decoded, list):
        raise CategorizationError("Categorization response has no 'categories' list")
    return decoded


def parse_categories(response, batch):
    """
    Return one ``(category, was_defaulted)`` pair per transaction in *batch*.

    A plain list of labels is aligned by position and must match the batch
    length. A list of ``{"idx", "category"}`` objects is aligned by ``idx``;
    rows the model skipped get the default. Labels outside the row type's
    vocabulary are replaced by the default too.
    """
    entries = _decode(response)
    if entries and all(isinstance(e, dict) for e in entries):
        by_idx = {}
        for entry in entries:
            try:
                by_idx[int(entry.get("idx"))] = entry.get("category")
            except (TypeError, ValueError):
                continue
        labels = [by_idx.get(i) for i in range(len(batch))]
    elif all(isinstance(e, str) for e in entries):
        if len(entries) != len(batch):
            raise CategorizationError(
                f"Expected {len(batch)} categories, got {len(entries)}"
            )
        labels = list(entries)
    else:
        raise CategorizationError("Mixed or unsupported entries in categories list")

    out = []
    for tx, label in zip(batch, labels):
        label = label.strip().lower() if isinstance(label, str) else None
        if label in categories_for(tx.type):
            out.append((label, False))
        else:
            out.append((default_category(tx.type), True))
    return out


def _fallback(batch):
    return [
        CategorizedTransaction.from_transaction(tx, default_category(tx.type), was_defaulted=True)
        for tx in batch
    ]


def categorize_batch(batch, client):
    """Categorize one batch; raises CategorizationError on any failure."""
    if client is None:
        raise CategorizationError("No LLM client configured")
    try:
        response = client.chat(build_messages(batch))
    except Exception as e:
        raise CategorizationError(f"LLM request failed: {e}") from e
    logger.debug("Categorization response: %s", response)
    pairs = parse_categories(response, batch)
    return [
        CategorizedTransaction.from_transaction(tx, cat, was_defaulted=defaulted)
        for tx, (cat, defaulted) in zip(batch, pairs)
    ]


def categorize_transactions(transactions, client=None, batch_size=BATCH_SIZE):
    """Return CategorizedTransaction objects in the same order as *transactions*."""
    transactions = list(transactions)
    if not transactions:
        return []
    if client is None:
        from caixafacil.ai import LLMClient
        try:
            client = LLMClient()
        except RuntimeError as e:
            logger.warning("LLM unavailable, using default categories: %s", e)

    results = []
    for number, batch in enumerate(batched(transactions, batch_size), start=1):
        try:
            results.extend(categorize_batch(batch, client))
        except CategorizationError as e:
            logger.warning(
                "Batch %d (%d transactions) categorization failed, using defaults: %s",
                number, len(batch), e,
            )
            results.extend(_fallback(batch))
    return results
