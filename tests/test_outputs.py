import csv

import openpyxl
import pytest

from caixafacil.database import query_transactions
from caixafacil.outputs import get_output
from caixafacil.outputs.csv_output import CSVOutput
from caixafacil.outputs.excel_output import ExcelOutput


def test_get_output_resolves_configured_class(tmp_path):
    config = {
        "output_dir": str(tmp_path),
        "output_modules": {"csv": "caixafacil.outputs.csv_output.CSVOutput"},
    }
    assert isinstance(get_output("csv", config), CSVOutput)
    with pytest.raises(ValueError):
        get_output("sheets", config)


def test_csv_output_sorted_oldest_first(tmp_path, seeded_db):
    out_dir = tmp_path / "out"
    path = CSVOutput({"output_dir": str(out_dir)}).write(query_transactions(seeded_db))

    assert path == str(out_dir / "Transacoes2024.csv")
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["date", "description", "type", "category", "amount", "bank_account", "notes"]
    assert [r[0] for r in rows[1:]] == sorted(r[0] for r in rows[1:])
    assert rows[1][:5] == ["2024-01-05", "Venda loja", "income", "vendas", "5000.00"]
    assert rows[2][4] == "-2000.00"


def test_outputs_skip_empty_input(tmp_path):
    config = {"output_dir": str(tmp_path)}
    assert CSVOutput(config).write([]) is None
    assert ExcelOutput(config).write([]) is None


def test_excel_output_sheets_and_summary(tmp_path, seeded_db):
    out_dir = tmp_path / "out"
    path = ExcelOutput({"output_dir": str(out_dir)}).write(query_transactions(seeded_db))

    assert path == str(out_dir / "FluxoDeCaixa2024.xlsx")
    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == ["01-2024", "02-2024", "03-2024", "AllData", "Summary", "Charts"]

    january = wb["01-2024"]
    assert [c.value for c in january[1]] == ["date", "description", "type", "category", "amount"]
    # largest amounts first
    assert january.cell(row=2, column=2).value == "Venda loja"
    assert january.cell(row=3, column=5).value == -2000.0

    all_data = wb["AllData"]
    assert all_data.max_row == 8
    assert all_data.cell(row=1, column=1).value == "month"

    summary = wb["Summary"]
    rows = list(summary.iter_rows(values_only=True))
    assert rows[0] == ("month", "income", "expense", "net")
    assert rows[3] == ("03-2024", 3500.0, 1200.0, 2300.0)
    assert rows[-1] == ("Grand Total", 12500.0, 3500.0, 9000.0)

    charts = wb["Charts"]
    assert charts.cell(row=2, column=1).value == "aluguel"
    assert charts.cell(row=2, column=2).value == 2000.0
