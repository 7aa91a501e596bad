# caixafacil/outputs/excel_output.py

"""Excel cash-flow report backed by XlsxWriter.

One worksheet per month lists that month's transactions (largest first),
``AllData`` consolidates every row, ``Summary`` shows income, expense and net
per month with a grand total, and ``Charts`` plots the monthly cash flow and
the expense split by category.
"""

from __future__ import annotations

from datetime import datetime
import logging
import os
import xlsxwriter

from caixafacil.core.models import EXPENSE, INCOME
from caixafacil.outputs.base import BaseOutput

logger = logging.getLogger(__name__)


class ExcelOutput(BaseOutput):
    """Generate a local Excel workbook summarizing cash flow."""

    MONTH_FMT = "%m-%Y"
    ALL_DATA = "AllData"
    SUMMARY = "Summary"
    CHARTS = "Charts"
    HEADERS = ["date", "description", "type", "category", "amount"]

    def __init__(self, config: dict):
        self.config = config
        self.output_dir = config.get("output_dir", "data")
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions):
        if not transactions:
            logger.info("No transactions to write.")
            return None

        months = sorted({tx["date"][:7] for tx in transactions})
        year = months[0][:4]
        out_path = os.path.join(self.output_dir, f"FluxoDeCaixa{year}.xlsx")

        workbook = xlsxwriter.Workbook(out_path)
        amount_fmt = workbook.add_format({"num_format": "R$ #,##0.00;[Red]-R$ #,##0.00"})

        all_rows = []
        summary = {}
        expense_by_category = {}
        for month_str in months:
            sheet_name = datetime.strptime(month_str, "%Y-%m").strftime(self.MONTH_FMT)
            ws = workbook.add_worksheet(sheet_name)
            ws.freeze_panes(1, 0)
            ws.write_row(0, 0, self.HEADERS)

            month_rows = []
            for tx in transactions:
                if tx["date"][:7] != month_str:
                    continue
                row = [
                    tx["date"],
                    tx["description"],
                    tx["type"],
                    tx.get("category") or "",
                    float(tx["amount"]),
                ]
                month_rows.append(row)
                all_rows.append([sheet_name] + row)

                totals = summary.setdefault(sheet_name, {INCOME: 0.0, EXPENSE: 0.0})
                if tx["type"] == INCOME:
                    totals[INCOME] += abs(row[4])
                else:
                    totals[EXPENSE] += abs(row[4])
                    expense_by_category[row[3]] = expense_by_category.get(row[3], 0.0) + abs(row[4])

            month_rows.sort(key=lambda r: abs(r[4]), reverse=True)
            for row_idx, row in enumerate(month_rows, start=1):
                ws.write_row(row_idx, 0, row[:4])
                ws.write_number(row_idx, 4, row[4], amount_fmt)
            ws.set_column(4, 4, 14, amount_fmt)
            ws.add_table(0, 0, len(month_rows), 4, {
                "columns": [{"header": h} for h in self.HEADERS]
            })

        all_ws = workbook.add_worksheet(self.ALL_DATA)
        all_ws.freeze_panes(1, 0)
        all_headers = ["month"] + self.HEADERS
        all_ws.write_row(0, 0, all_headers)
        for idx, row in enumerate(all_rows, start=1):
            all_ws.write_row(idx, 0, row[:5])
            all_ws.write_number(idx, 5, row[5], amount_fmt)
        all_ws.set_column(5, 5, 14, amount_fmt)
        all_ws.add_table(0, 0, len(all_rows), 5, {
            "columns": [{"header": h} for h in all_headers]
        })

        summary_ws = workbook.add_worksheet(self.SUMMARY)
        summary_ws.freeze_panes(1, 0)
        summary_ws.set_column(1, 3, 14, amount_fmt)
        summary_ws.write_row(0, 0, ["month", "income", "expense", "net"])
        grand = {INCOME: 0.0, EXPENSE: 0.0}
        row_idx = 1
        for month_str in months:
            sheet_name = datetime.strptime(month_str, "%Y-%m").strftime(self.MONTH_FMT)
            totals = summary.get(sheet_name, {INCOME: 0.0, EXPENSE: 0.0})
            summary_ws.write(row_idx, 0, sheet_name)
            summary_ws.write_number(row_idx, 1, totals[INCOME], amount_fmt)
            summary_ws.write_number(row_idx, 2, totals[EXPENSE], amount_fmt)
            summary_ws.write_number(row_idx, 3, totals[INCOME] - totals[EXPENSE], amount_fmt)
            grand[INCOME] += totals[INCOME]
            grand[EXPENSE] += totals[EXPENSE]
            row_idx += 1
        summary_ws.write(row_idx, 0, "Grand Total")
        summary_ws.write_number(row_idx, 1, grand[INCOME], amount_fmt)
        summary_ws.write_number(row_idx, 2, grand[EXPENSE], amount_fmt)
        summary_ws.write_number(row_idx, 3, grand[INCOME] - grand[EXPENSE], amount_fmt)

        self._insert_charts(workbook, summary_ws, len(months), expense_by_category, amount_fmt)

        workbook.close()
        logger.info("Written Excel workbook %s", out_path)
        return out_path

    def _insert_charts(self, workbook, summary_ws, month_count, expense_by_category, amount_fmt):
        charts_ws = workbook.add_worksheet(self.CHARTS)
        charts_ws.set_column(1, 1, 14, amount_fmt)

        cash_flow = workbook.add_chart({"type": "column"})
        for col, name in ((1, "Receitas"), (2, "Despesas")):
            cash_flow.add_series({
                "name": name,
                "categories": [summary_ws.name, 1, 0, month_count, 0],
                "values": [summary_ws.name, 1, col, month_count, col],
            })
        cash_flow.set_title({"name": "Fluxo de caixa mensal"})
        cash_flow.set_legend({"position": "bottom"})
        charts_ws.insert_chart(0, 3, cash_flow)

        rows = sorted(expense_by_category.items(), key=lambda item: item[1], reverse=True)
        charts_ws.write_row(0, 0, ["category", "expense"])
        for idx, (category, total) in enumerate(rows, start=1):
            charts_ws.write(idx, 0, category)
            charts_ws.write_number(idx, 1, total, amount_fmt)
        if rows:
            pie = workbook.add_chart({"type": "pie"})
            pie.add_series({
                "name": "Despesas por categoria",
                "categories": [charts_ws.name, 1, 0, len(rows), 0],
                "values": [charts_ws.name, 1, 1, len(rows), 1],
            })
            pie.set_title({"name": "Despesas por categoria"})
            charts_ws.insert_chart(18, 3, pie)
