import pytest

from caixafacil.ai import LLMClient
from caixafacil.config import load_config
from caixafacil.core.models import Transaction
from caixafacil.database import query_transactions
from caixafacil.errors import AggregatorError
from caixafacil.importer import sync_account
from caixafacil.loaders import get_loader
from caixafacil.loaders import iniciador, pluggy
from caixafacil.loaders.iniciador import IniciadorLoader
from caixafacil.loaders.pluggy import PluggyLoader


class FakeAPI:
    """Routes request_json calls by URL prefix and records them."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def __call__(self, url, payload=None, headers=None, method=None, timeout=30):
        self.calls.append((url, payload, headers))
        for prefix, response in self.routes.items():
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response(url) if callable(response) else response
        raise AssertionError(f"unexpected request {url}")


class StaticProvider:
    def generate(self, messages):
        return '{"categories": []}'


def test_pluggy_to_transaction():
    assert pluggy.to_transaction(
        {"date": "2024-05-02T10:00:00.000Z", "description": "PIX Cliente", "amount": 120.5}
    ) == Transaction(date="2024-05-02", description="PIX Cliente", amount=120.5, type="income")
    tx = pluggy.to_transaction({"date": "2024-05-03", "description": "", "amount": -40})
    assert tx.type == "expense" and tx.amount == 40.0
    assert tx.description == "Transação bancária"
    assert pluggy.to_transaction({"date": "2024-05-03", "amount": 0}) is None


def test_pluggy_loader_pages_through_results(monkeypatch):
    def transactions(url):
        page = int(url.rsplit("page=", 1)[1])
        return {
            "totalPages": 2,
            "results": [{"date": f"2024-05-0{page}", "description": f"Item {page}", "amount": -page}],
        }

    api = FakeAPI({
        "https://api.pluggy.ai/auth": {"apiKey": "key-123"},
        "https://api.pluggy.ai/transactions": transactions,
    })
    monkeypatch.setattr("caixafacil.loaders.base.request_json", api)

    loader = PluggyLoader(client_id="id", client_secret="secret")
    txs = list(loader.load("item-1"))

    assert [tx.description for tx in txs] == ["Item 1", "Item 2"]
    assert api.calls[0][1] == {"clientId": "id", "clientSecret": "secret"}
    assert api.calls[1][2] == {"X-API-KEY": "key-123"}
    assert "itemId=item-1" in api.calls[1][0]
    assert loader.notes(None) == "Importado via Pluggy"


def test_pluggy_requires_credentials(monkeypatch):
    monkeypatch.delenv("PLUGGY_CLIENT_ID", raising=False)
    monkeypatch.delenv("PLUGGY_CLIENT_SECRET", raising=False)
    with pytest.raises(AggregatorError):
        list(PluggyLoader().load("item-1"))


def test_iniciador_to_transaction():
    tx = iniciador.to_transaction({
        "transactionDate": "2024-06-01",
        "transactionName": "Boleto energia",
        "amount": {"amount": "210.30", "currency": "BRL"},
        "creditDebitType": "DEBIT",
    })
    assert tx == Transaction(date="2024-06-01", description="Boleto energia", amount=210.3, type="expense")
    assert iniciador.to_transaction({"date": "2024-06-01", "description": "", "amount": 5}) is None


def test_iniciador_skips_failing_accounts(monkeypatch):
    api = FakeAPI({
        "https://api.iniciador.com.br/oauth/token": {"access_token": "tok"},
        "https://api.iniciador.com.br/accounts?": {"data": [{"id": "a1"}, {"id": "a2"}]},
        "https://api.iniciador.com.br/accounts/a1/": {
            "data": [{"date": "2024-06-02", "description": "Venda", "amount": 99, "type": "CREDIT"}],
        },
        "https://api.iniciador.com.br/accounts/a2/": AggregatorError("HTTP 500"),
    })
    monkeypatch.setattr("caixafacil.loaders.base.request_json", api)

    loader = get_loader("iniciador", load_config(None), client_id="id", client_secret="secret")
    assert isinstance(loader, IniciadorLoader)
    txs = list(loader.load("consent-9"))

    assert txs == [Transaction(date="2024-06-02", description="Venda", amount=99.0, type="income")]
    assert api.calls[1][2] == {"Authorization": "Bearer tok"}


def test_sync_account_imports_once(monkeypatch, tmp_path):
    api = FakeAPI({
        "https://api.pluggy.ai/auth": {"apiKey": "k"},
        "https://api.pluggy.ai/transactions": {
            "totalPages": 1,
            "results": [
                {"date": "2024-05-02", "description": "PIX Cliente", "amount": 120.5},
                {"date": "2024-05-03", "description": "Tarifa", "amount": -9.9},
            ],
        },
    })
    monkeypatch.setattr("caixafacil.loaders.base.request_json", api)
    db_path = str(tmp_path / "caixa.db")
    loader = PluggyLoader(client_id="id", client_secret="secret")
    client = LLMClient(StaticProvider())

    first = sync_account(loader, "item-1", "Itaú PJ", db_path, client=client)
    second = sync_account(loader, "item-1", "Itaú PJ", db_path, client=client)

    assert (first.imported, first.total) == (2, 2)
    assert (second.imported, second.skipped) == (0, 2)
    rows = query_transactions(db_path)
    assert {r["notes"] for r in rows} == {"Importado via Pluggy"}
    assert {r["category"] for r in rows} == {"outras_receitas", "outras_despesas"}


def test_get_loader_unknown_name():
    with pytest.raises(ValueError):
        get_loader("bradesco", load_config(None))


def test_pluggy_skips_non_numeric_amounts():
    assert pluggy.to_transaction({"date": "2024-03-05T00:00:00Z", "description": "PIX", "amount": "abc"}) is None
    assert pluggy.to_transaction({"date": "2024-03-05", "description": "PIX", "amount": "12.5"}).amount == 12.5


def test_pluggy_sync_continues_past_bad_amounts(monkeypatch, tmp_path):
    api = FakeAPI({
        "https://api.pluggy.ai/auth": {"apiKey": "k"},
        "https://api.pluggy.ai/transactions": {
            "totalPages": 1,
            "results": [
                {"date": "2024-05-02", "description": "Estorno", "amount": {"value": 3}},
                {"date": "2024-05-03", "description": "Tarifa", "amount": -9.9},
            ],
        },
    })
    monkeypatch.setattr("caixafacil.loaders.base.request_json", api)
    loader = PluggyLoader(client_id="id", client_secret="secret")

    result = sync_account(loader, "item-1", "Itaú PJ", str(tmp_path / "caixa.db"), client=LLMClient(StaticProvider()))
    assert (result.imported, result.total) == (1, 1)
