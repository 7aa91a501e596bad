# caixafacil/recurring.py
from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional

import yaml

from caixafacil.core.models import EXPENSE_CATEGORIES
from caixafacil.utils import add_months

ACTIVE = "active"
PAUSED = "paused"


@dataclass
class RecurringExpense:
    description: str
    amount: float
    due_day: int = 10
    category: str = "outras_despesas"
    status: str = ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def due_date(self, year: int, month: int) -> date:
        return date(year, month, min(self.due_day, monthrange(year, month)[1]))


def _parse_entry(entry) -> RecurringExpense:
    description = entry.get("description")
    if not description:
        raise ValueError(f"Missing 'description' in recurring expense: {entry}")
    if entry.get("amount") is None:
        raise ValueError(f"Missing 'amount' in recurring expense: {entry}")

    due_day = int(entry.get("due_day", 10))
    if not 1 <= due_day <= 31:
        raise ValueError(f"'due_day' must be between 1 and 31: {entry}")

    category = entry.get("category") or "outras_despesas"
    if category not in EXPENSE_CATEGORIES:
        raise ValueError(f"Unknown expense category '{category}' in: {entry}")

    status = entry.get("status", ACTIVE)
    if status not in (ACTIVE, PAUSED):
        raise ValueError(f"Unsupported status '{status}' in: {entry}")

    return RecurringExpense(
        description=description,
        amount=abs(float(entry["amount"])),
        due_day=due_day,
        category=category,
        status=status,
    )


def parse_recurring_expenses(entries: Optional[Iterable[dict]]) -> List[RecurringExpense]:
    if not entries:
        return []
    return [_parse_entry(entry) for entry in entries]


def load_recurring_expenses(path) -> List[RecurringExpense]:
    """Load recurring expenses from a YAML list."""
    with open(path) as f:
        data = yaml.safe_load(f) or []
    return parse_recurring_expenses(data)


def upcoming_expenses(
    expenses: Iterable[RecurringExpense],
    today: date,
    days: int = 30,
) -> List[dict]:
    """Active expenses falling due between *today* and *today + days*, soonest first."""

    window_end = today + timedelta(days=days)
    upcoming = []
    for expense in expenses:
        if not expense.is_active:
            continue
        month_start = today.replace(day=1)
        offset = 0
        while True:
            current = add_months(month_start, offset)
            due = expense.due_date(current.year, current.month)
            if due > window_end:
                break
            if due >= today:
                upcoming.append(
                    {
                        "description": expense.description,
                        "category": expense.category,
                        "amount": expense.amount,
                        "due_date": due.isoformat(),
                        "days_until": (due - today).days,
                    }
                )
            offset += 1
    upcoming.sort(key=lambda item: (item["due_date"], item["description"]))
    return upcoming


def project_cash_flow(
    current_balance: float,
    avg_monthly_income: float,
    expenses: Iterable[RecurringExpense],
    start: date,
    months: int = 3,
) -> dict:
    """
    Project the balance month by month: average income in, active recurring
    expenses out.
    """

    monthly_expense = sum(e.amount for e in expenses if e.is_active)
    balance = current_balance
    projections = []
    for i in range(1, months + 1):
        month = add_months(start.replace(day=1), i)
        balance += avg_monthly_income - monthly_expense
        projections.append(
            {
                "month": month.strftime("%Y-%m"),
                "income": round(avg_monthly_income, 2),
                "expense": round(monthly_expense, 2),
                "balance": round(balance, 2),
                "is_positive": balance >= 0,
            }
        )

    final = projections[-1]["balance"] if projections else current_balance
    return {
        "current_balance": round(current_balance, 2),
        "avg_monthly_income": round(avg_monthly_income, 2),
        "monthly_recurring_expenses": round(monthly_expense, 2),
        "projections": projections,
        "trend": "up" if final > current_balance else "down",
        "has_negative": any(not p["is_positive"] for p in projections),
    }
