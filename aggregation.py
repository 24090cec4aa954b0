"""Category summaries and budget progress.

Both functions are read-only and take the SQLAlchemy session to query as
their first argument.
"""
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from errors import ValidationError
from models import Category, Expense
from repository import BudgetRepository

CENT = Decimal("0.01")


def to_money(value):
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(part, whole):
    if not whole:
        return 0.0
    return round(float(part / whole * 100), 2)


def summarize_by_category(session, user_id, start_date, end_date):
    """Total the user's expenses per category between two dates, inclusive.

    Categories without expenses in the window are left out. The breakdown is
    ordered by amount, largest first, ties by category id.
    """
    if start_date is None or end_date is None:
        raise ValidationError("Start date and end date are required", code="missing_date_range")
    if end_date < start_date:
        raise ValidationError("End date must not be before start date", code="invalid_date_range")

    spent = func.sum(Expense.amount)
    rows = session.query(Category.id, Category.name, Category.color, spent)\
        .join(Expense, Expense.category_id == Category.id)\
        .filter(Expense.user_id == user_id,
                Expense.date.between(start_date, end_date))\
        .group_by(Category.id, Category.name, Category.color)\
        .all()

    breakdown = [{
        "category_id": category_id,
        "category_name": name,
        "color": color,
        "amount": to_money(amount),
    } for category_id, name, color, amount in rows]
    # Sum of the quantized groups, so the breakdown always adds up exactly
    total = sum((item["amount"] for item in breakdown), Decimal("0.00"))
    for item in breakdown:
        item["percentage"] = percentage_of(item["amount"], total)
    breakdown.sort(key=lambda item: (-item["amount"], item["category_id"]))

    return {
        "total_amount": total,
        "category_breakdown": breakdown,
        "period": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
    }


def budget_progress(session, user_id, budget_id):
    budget = BudgetRepository(session, user_id).get(budget_id)
    spent = session.query(func.sum(Expense.amount))\
        .filter(Expense.user_id == user_id,
                Expense.category_id == budget.category_id,
                Expense.date.between(budget.start_date, budget.end_date))\
        .scalar()
    spent = to_money(spent)
    amount = to_money(budget.amount)
    # Only the percentage is capped; spent and remaining keep their real values
    percentage = min(max(percentage_of(spent, amount), 0.0), 100.0)
    return {
        "budget": budget.to_dict(),
        "progress": {
            "spent": spent,
            "remaining": amount - spent,
            "percentage": percentage,
        },
    }
