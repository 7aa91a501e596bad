import csv

import yaml
from click.testing import CliRunner

from caixafacil.cli import main as cli
from caixafacil.database import query_transactions

STATEMENT = (
    "Data;Histórico;Valor (R$)\n"
    "05/03/2024;Pagamento Fornecedor XYZ;-1.500,00\n"
    "06/03/2024;Venda balcão;2.300,50\n"
    "07/03/2024;Tarifa;0,00\n"
)


def write_config(tmp_path):
    cfg = {
        "db_path": str(tmp_path / "caixa.db"),
        "output_dir": str(tmp_path / "data"),
        "recurring_expenses": [
            {"description": "Aluguel", "amount": 900, "due_day": 10, "category": "aluguel"},
        ],
    }
    path = tmp_path / "config.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(cfg, f)
    return path


def write_statement(tmp_path, name="extrato.csv"):
    path = tmp_path / name
    path.write_text(STATEMENT, encoding="utf-8")
    return path


def _no_llm(monkeypatch):
    monkeypatch.setenv("CAIXAFACIL_LLM_PROVIDER", "openai")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def test_cli_import_list_export_delete(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    stmt = write_statement(tmp_path)
    runner = CliRunner()

    res = runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Itaú PJ"])
    assert res.exit_code == 0, res.output
    assert "2 transação(ões) importada(s) de 3 para 'Itaú PJ'" in res.output
    assert "1 linha(s) inválida(s) descartada(s)" in res.output

    res = runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Itaú PJ"])
    assert res.exit_code == 0, res.output
    assert "0 transação(ões) importada(s) de 3" in res.output
    assert "2 já existiam" in res.output

    rows = query_transactions(str(tmp_path / "caixa.db"))
    assert sorted(r["amount"] for r in rows) == [-1500.0, 2300.5]

    res = runner.invoke(cli, ["--config", str(cfg_path), "imports"])
    assert res.exit_code == 0, res.output
    assert "Itaú PJ" in res.output
    notes = rows[0]["notes"]
    assert notes.startswith("Importado do extrato CSV em ")

    res = runner.invoke(cli, ["--config", str(cfg_path), "export", "--output", "csv"])
    assert res.exit_code == 0, res.output
    out_csv = tmp_path / "data" / "Transacoes2024.csv"
    with open(out_csv, newline="", encoding="utf-8") as f:
        exported = list(csv.DictReader(f))
    assert [r["description"] for r in exported] == ["Pagamento Fornecedor XYZ", "Venda balcão"]
    assert exported[0]["category"] == "outras_despesas"

    res = runner.invoke(cli, ["--config", str(cfg_path), "export", "--output", "excel"])
    assert res.exit_code == 0, res.output
    assert (tmp_path / "data" / "FluxoDeCaixa2024.xlsx").exists()

    res = runner.invoke(cli, ["--config", str(cfg_path), "delete-import", notes, "--yes"])
    assert res.exit_code == 0, res.output
    assert "2 transação(ões) excluída(s)" in res.output
    assert query_transactions(str(tmp_path / "caixa.db")) == []

    res = runner.invoke(cli, ["--config", str(cfg_path), "imports"])
    assert "Nenhuma importação encontrada." in res.output


def test_cli_import_with_column_overrides(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    stmt = tmp_path / "extrato.csv"
    stmt.write_text("Quando,O quê,Quanto\n01/02/2024,Venda,\"100,00\"\n", encoding="utf-8")
    runner = CliRunner()

    res = runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Caixa"])
    assert res.exit_code != 0
    assert "colunas" in res.output

    res = runner.invoke(cli, [
        "--config", str(cfg_path), "import", str(stmt), "--account", "Caixa",
        "--map", "date=Quando", "--map", "description=O quê", "--map", "value=Quanto",
    ])
    assert res.exit_code == 0, res.output
    assert "1 transação(ões) importada(s)" in res.output

    res = runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Caixa", "--map", "Quando"])
    assert res.exit_code != 0


def test_cli_rejects_non_csv(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    stmt = write_statement(tmp_path, "extrato.ofx")
    res = CliRunner().invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Itaú PJ"])
    assert res.exit_code != 0
    assert "Apenas arquivos CSV" in res.output


def test_cli_summary_and_projection(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["--config", str(cfg_path), "import", str(write_statement(tmp_path)), "--account", "Itaú PJ"])

    res = runner.invoke(cli, ["--config", str(cfg_path), "summary"])
    assert res.exit_code == 0, res.output
    assert "Saldo: R$ 800,50" in res.output

    res = runner.invoke(cli, ["--config", str(cfg_path), "projection", "--months", "2"])
    assert res.exit_code == 0, res.output
    assert "Saldo atual: R$ 800,50" in res.output
    assert "Despesas recorrentes: R$ 900,00" in res.output


def test_cli_advisor_uses_provider(tmp_path, monkeypatch):
    class DummyProvider:
        def generate(self, messages):
            return "Flávio responde"

    monkeypatch.setattr("caixafacil.ai.get_provider_from_env", lambda: DummyProvider())
    cfg_path = write_config(tmp_path)
    res = CliRunner().invoke(cli, ["--config", str(cfg_path), "advisor", "Como estou?"])
    assert res.exit_code == 0, res.output
    assert "Flávio responde" in res.output


def test_cli_advisor_without_llm(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    res = CliRunner().invoke(cli, ["--config", str(cfg_path), "advisor", "Como estou?"])
    assert res.exit_code != 0
    assert "OPENAI_API_KEY" in res.output


def test_cli_import_non_utf8_statement(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    stmt = tmp_path / "extrato.csv"
    stmt.write_bytes(STATEMENT.encode("latin-1"))

    res = CliRunner().invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Itaú"])
    assert res.exit_code == 1
    assert not isinstance(res.exception, UnicodeDecodeError)
    assert "O arquivo deve estar em UTF-8." in res.output


def test_cli_accounts_lists_balances(tmp_path, monkeypatch):
    _no_llm(monkeypatch)
    cfg_path = write_config(tmp_path)
    runner = CliRunner()

    res = runner.invoke(cli, ["--config", str(cfg_path), "accounts"])
    assert res.exit_code == 0, res.output
    assert "Nenhuma conta encontrada." in res.output

    stmt = write_statement(tmp_path)
    runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Itaú PJ"])
    runner.invoke(cli, ["--config", str(cfg_path), "import", str(stmt), "--account", "Caixa loja"])

    res = runner.invoke(cli, ["--config", str(cfg_path), "accounts"])
    assert res.exit_code == 0, res.output
    lines = res.output.splitlines()
    assert lines[0].startswith("Caixa loja") and lines[0].endswith("R$ 800,50")
    assert lines[1].startswith("Itaú PJ")
