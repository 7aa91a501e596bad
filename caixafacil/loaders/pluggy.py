# caixafacil/loaders/pluggy.py

import logging
import os
from urllib.parse import urlencode

from caixafacil.core.models import EXPENSE, INCOME, Transaction
from caixafacil.errors import AggregatorError
from caixafacil.loaders import base
from caixafacil.loaders.base import BaseLoader

logger = logging.getLogger(__name__)

_DEFAULT_DESCRIPTION = "Transação bancária"


def _amount(raw):
    try:
        return float(raw.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


def to_transaction(raw):
    """Convert one Pluggy transaction payload; None when it has no date or amount."""
    tx_date = (raw.get("date") or "").split("T")[0]
    description = (raw.get("description") or "").strip() or _DEFAULT_DESCRIPTION
    amount = _amount(raw)
    if not tx_date or amount == 0:
        logger.warning("Skipping Pluggy transaction without date/amount: %s", raw.get("id"))
        return None
    return Transaction(
        date=tx_date,
        description=description,
        amount=abs(amount),
        type=INCOME if amount > 0 else EXPENSE,
    )


class PluggyLoader(BaseLoader):
    """
    Loader for accounts connected through the Pluggy aggregator.

    ``load(item_id)`` authenticates with the client credentials, then pages
    through ``/transactions?itemId=...``.
    """
    source_label = "Importado via Pluggy"
    base_url = "https://api.pluggy.ai"

    def __init__(self, config=None, client_id=None, client_secret=None):
        super().__init__(config)
        pluggy_cfg = self.config.get("pluggy", {})
        self.base_url = pluggy_cfg.get("base_url", self.base_url)
        self.client_id = client_id or os.environ.get("PLUGGY_CLIENT_ID")
        self.client_secret = client_secret or os.environ.get("PLUGGY_CLIENT_SECRET")

    def _api_key(self):
        if not self.client_id or not self.client_secret:
            raise AggregatorError("PLUGGY_CLIENT_ID/PLUGGY_CLIENT_SECRET not set")
        auth = base.request_json(
            f"{self.base_url}/auth",
            {"clientId": self.client_id, "clientSecret": self.client_secret},
        )
        api_key = auth.get("apiKey")
        if not api_key:
            raise AggregatorError("Pluggy authentication returned no apiKey")
        return api_key

    def fetch(self, item_id):
        headers = {"X-API-KEY": self._api_key()}
        results = []
        page, total_pages = 1, 1
        while page <= total_pages:
            query = urlencode({"itemId": item_id, "page": page})
            data = base.request_json(f"{self.base_url}/transactions?{query}", headers=headers)
            results.extend(data.get("results") or [])
            total_pages = int(data.get("totalPages") or 1)
            page += 1
        return results

    def load(self, item_id):
        for raw in self.fetch(item_id):
            tx = to_transaction(raw)
            if tx is not None:
                yield tx
