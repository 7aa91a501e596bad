# caixafacil/dashboard.py
from __future__ import annotations

from datetime import date
from typing import Dict

from caixafacil.core.models import EXPENSE
from caixafacil.database import (
    account_balance,
    average_monthly_income,
    summarize_by_category,
    summarize_by_month,
)
from caixafacil.recurring import parse_recurring_expenses, project_cash_flow, upcoming_expenses
from caixafacil.utils import months_back


def cash_projection(db_path: str, config: dict, today: date | None = None, months: int = 3) -> Dict[str, object]:
    today = today or date.today()
    expenses = parse_recurring_expenses(config.get("recurring_expenses"))
    return project_cash_flow(
        account_balance(db_path),
        average_monthly_income(db_path, today=today),
        expenses,
        start=today,
        months=months,
    )


def financial_snapshot(
    db_path: str,
    config: dict,
    today: date | None = None,
    months: int = 6,
    top_categories: int = 5,
) -> Dict[str, object]:
    """Compact view of the business's numbers, small enough for an LLM prompt."""

    today = today or date.today()
    start = months_back(today, months - 1)
    expenses = parse_recurring_expenses(config.get("recurring_expenses"))
    return {
        "date": today.isoformat(),
        "balance": account_balance(db_path),
        "monthly_cash_flow": summarize_by_month(db_path, start_date=start),
        "top_expense_categories": summarize_by_category(
            db_path, tx_type=EXPENSE, start_date=start
        )[:top_categories],
        "upcoming_expenses": upcoming_expenses(expenses, today),
        "projection": cash_projection(db_path, config, today),
        "business_context": config.get("business_context") or {},
    }
