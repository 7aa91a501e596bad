import pytest

from caixafacil.database import insert_transactions


def _row(tx_date, description, amount, tx_type, category, account="Itaú PJ", notes="Importado via Pluggy"):
    return {
        "date": tx_date,
        "description": description,
        "amount": amount,
        "type": tx_type,
        "category": category,
        "payment_method": "transferencia",
        "bank_account": account,
        "notes": notes,
    }


@pytest.fixture
def seeded_db(tmp_path):
    """A database holding three months of cash flow on two accounts."""
    db_path = str(tmp_path / "caixa.db")
    csv_notes = "Importado do extrato CSV em 02/03/2024 09:15:00"
    insert_transactions(
        [
            _row("2024-01-05", "Venda loja", 5000.0, "income", "vendas"),
            _row("2024-01-10", "Aluguel janeiro", -2000.0, "expense", "aluguel"),
            _row("2024-02-05", "Venda loja", 4000.0, "income", "vendas"),
            _row("2024-02-12", "Energia", -300.0, "expense", "contas_servicos"),
            _row("2024-03-01", "Consultoria", 3000.0, "income", "servicos", notes=csv_notes),
            _row("2024-03-02", "Fornecedor ABC", -1200.0, "expense", "fornecedores", notes=csv_notes),
            _row("2024-03-03", "Pix recebido", 500.0, "income", "outras_receitas", account="Nubank PJ", notes="manual"),
        ],
        db_path,
    )
    return db_path
