# expense_pwa/overview.py
"""Dashboard figures computed from the local store."""

from datetime import datetime, timedelta

import pandas as pd

from .transactions import recent_transactions

FRAME_COLUMNS = ["id", "amount", "type", "category", "description", "date", "accountId"]


def transactions_frame(transactions):
    df = pd.DataFrame(transactions, columns=FRAME_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    return df.dropna(subset=["date", "amount"])


def _this_month(df, today):
    return df[(df["date"].dt.year == today.year) & (df["date"].dt.month == today.month)]


def _total(df, tx_type):
    return round(float(df.loc[df["type"] == tx_type, "amount"].sum()), 2)


def current_balance(accounts, df, today=None):
    today = today or datetime.now()
    month = _this_month(df, today)
    income = _total(month, "income")
    expenses = _total(month, "expense")
    net_change = round(income - expenses, 2)
    return {
        "total_balance": round(sum(float(a.get("balance") or 0) for a in accounts), 2),
        "monthly_income": income,
        "monthly_expenses": expenses,
        "net_change": net_change,
        "is_positive": net_change >= 0,
    }


def monthly_spend(df, budget, today=None):
    today = today or datetime.now()
    spent = _total(_this_month(df, today), "expense")
    percentage = min(100.0, spent / budget * 100) if budget > 0 else 0.0
    return {
        "monthly_spend": spent,
        "monthly_budget": round(float(budget), 2),
        "percentage": round(percentage, 1),
        "remaining": round(float(budget) - spent, 2),
        "over_budget": budget > 0 and spent > budget,
    }


def spending_by_category(df, days=30, today=None):
    today = today or datetime.now()
    since = today - timedelta(days=days)
    expenses = df[(df["type"] == "expense") & (df["date"] >= since)]
    if expenses.empty:
        return []
    totals = expenses.groupby("category")["amount"].sum().sort_values(ascending=False)
    grand_total = float(totals.sum())
    return [
        {
            "category": category,
            "total": round(float(total), 2),
            "percent": round(float(total) / grand_total * 100, 2) if grand_total else 0,
        }
        for category, total in totals.items()
    ]


def build_overview(store, monthly_budget, today=None, recent_limit=5):
    accounts = store.accounts.to_list()
    df = transactions_frame(store.transactions.to_list())
    return {
        "balance": current_balance(accounts, df, today),
        "spend": monthly_spend(df, monthly_budget, today),
        "recent": recent_transactions(store, recent_limit),
        "by_category": spending_by_category(df, today=today),
        "accounts": accounts,
    }


def empty_overview(monthly_budget):
    """Shown when storage is unavailable."""
    df = transactions_frame([])
    return {
        "balance": current_balance([], df),
        "spend": monthly_spend(df, monthly_budget),
        "recent": [],
        "by_category": [],
        "accounts": [],
    }
