# caixafacil/loaders/iniciador.py

import logging
import os
from urllib.parse import quote, urlencode

from caixafacil.core.models import EXPENSE, INCOME, Transaction
from caixafacil.errors import AggregatorError
from caixafacil.loaders import base
from caixafacil.loaders.base import BaseLoader

logger = logging.getLogger(__name__)


def _amount(raw):
    value = raw.get("amount")
    if isinstance(value, dict):
        value = value.get("amount")
    try:
        return abs(float(value or 0))
    except (TypeError, ValueError):
        return 0.0


def to_transaction(raw):
    """Convert one Iniciador transaction payload; None when it is unusable."""
    tx_date = (raw.get("date") or raw.get("transactionDate") or "").split("T")[0]
    description = (raw.get("description") or raw.get("transactionName") or "").strip()
    amount = _amount(raw)
    if not tx_date or not description or amount == 0:
        logger.warning("Skipping Iniciador transaction: %s", raw.get("id"))
        return None
    kind = str(raw.get("type") or raw.get("creditDebitType") or "").upper()
    return Transaction(
        date=tx_date,
        description=description,
        amount=amount,
        type=EXPENSE if kind == "DEBIT" else INCOME,
    )


class IniciadorLoader(BaseLoader):
    """
    Loader for Open Finance consents brokered by Iniciador.

    ``load(consent_id)`` lists the consent's accounts and yields the
    transactions of each; an account whose transactions cannot be fetched is
    logged and skipped.
    """
    source_label = "Importado via Iniciador"
    base_url = "https://api.iniciador.com.br"
    page_size = 100

    def __init__(self, config=None, client_id=None, client_secret=None):
        super().__init__(config)
        ini_cfg = self.config.get("iniciador", {})
        self.base_url = ini_cfg.get("base_url", self.base_url)
        self.client_id = client_id or os.environ.get("INICIADOR_CLIENT_ID")
        self.client_secret = client_secret or os.environ.get("INICIADOR_CLIENT_SECRET")

    def _token(self):
        if not self.client_id or not self.client_secret:
            raise AggregatorError("INICIADOR_CLIENT_ID/INICIADOR_CLIENT_SECRET not set")
        auth = base.request_json(
            f"{self.base_url}/oauth/token",
            {
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        token = auth.get("access_token")
        if not token:
            raise AggregatorError("Iniciador authentication returned no access_token")
        return token

    def fetch(self, consent_id):
        headers = {"Authorization": f"Bearer {self._token()}"}
        accounts = base.request_json(
            f"{self.base_url}/accounts?{urlencode({'consent_id': consent_id})}",
            headers=headers,
        )
        results = []
        for account in accounts.get("data") or []:
            account_id = account.get("id")
            url = (
                f"{self.base_url}/accounts/{quote(str(account_id))}/transactions"
                f"?{urlencode({'page_size': self.page_size})}"
            )
            try:
                data = base.request_json(url, headers=headers)
            except AggregatorError as e:
                logger.warning("Could not fetch transactions of account %s: %s", account_id, e)
                continue
            results.extend(data.get("data") or [])
        return results

    def load(self, consent_id):
        for raw in self.fetch(consent_id):
            tx = to_transaction(raw)
            if tx is not None:
                yield tx
