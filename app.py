import logging
from datetime import datetime
from io import BytesIO

import pandas as pd
from flask import Blueprint, Flask, current_app, jsonify, request, send_file
from flask_login import current_user, login_required

from aggregation import budget_progress, summarize_by_category
from auth import auth_bp, init_auth, users_bp
from config import Config
from errors import ValidationError, register_error_handlers
from forms import (BudgetForm, BudgetUpdateForm, CategoryForm, CategoryUpdateForm,
                   ExpenseForm, ExpenseUpdateForm)
from models import db
from repository import BudgetRepository, CategoryRepository, ExpenseRepository

logger = logging.getLogger("household-expenses")

api = Blueprint("api", __name__, url_prefix="/api")


def parse_date(value, name):
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid {name}, expected YYYY-MM-DD", code="invalid_date")


def expense_filters():
    return {
        "start_date": parse_date(request.args.get("start_date"), "start_date"),
        "end_date": parse_date(request.args.get("end_date"), "end_date"),
        "category_id": request.args.get("category_id", type=int),
    }


def categories():
    return CategoryRepository(db.session, current_user.id)


def expenses():
    return ExpenseRepository(db.session, current_user.id)


def budgets():
    return BudgetRepository(db.session, current_user.id)


# ---------------- Categories ----------------
@api.route("/categories", methods=["GET"])
@login_required
def list_categories():
    return jsonify({"categories": [c.to_dict() for c in categories().list()]})


@api.route("/categories", methods=["POST"])
@login_required
def create_category():
    form = CategoryForm().validated()
    category = categories().create(name=form.name.data, color=form.color.data or None,
                                   icon=form.icon.data or None)
    return jsonify({"message": "Category created successfully", "category": category.to_dict()}), 201


@api.route("/categories/<int:category_id>", methods=["GET"])
@login_required
def get_category(category_id):
    return jsonify({"category": categories().get(category_id).to_dict()})


@api.route("/categories/<int:category_id>", methods=["PATCH", "PUT"])
@login_required
def update_category(category_id):
    form = CategoryUpdateForm().validated()
    category = categories().update(category_id, form.patch())
    return jsonify({"message": "Category updated successfully", "category": category.to_dict()})


@api.route("/categories/<int:category_id>", methods=["DELETE"])
@login_required
def delete_category(category_id):
    categories().delete(category_id)
    return jsonify({"message": "Category deleted successfully"})


# ---------------- Expenses ----------------
@api.route("/expenses", methods=["GET"])
@login_required
def list_expenses():
    page = request.args.get("page", 1, type=int)
    limit = min(request.args.get("limit", current_app.config["DEFAULT_PAGE_SIZE"], type=int),
                current_app.config["MAX_PAGE_SIZE"])
    items, total = expenses().list(page=page, limit=limit, **expense_filters())
    return jsonify({
        "expenses": [e.to_dict() for e in items],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": -(-total // limit),
        },
    })


@api.route("/expenses", methods=["POST"])
@login_required
def create_expense():
    form = ExpenseForm().validated()
    expense = expenses().create(
        amount=form.amount.data,
        description=form.description.data,
        date=form.date.data,
        category_id=form.category_id.data,
    )
    return jsonify({"message": "Expense created successfully", "expense": expense.to_dict()}), 201


@api.route("/expenses/summary", methods=["GET"])
@login_required
def expense_summary():
    summary = summarize_by_category(
        db.session,
        current_user.id,
        parse_date(request.args.get("start_date"), "start_date"),
        parse_date(request.args.get("end_date"), "end_date"),
    )
    return jsonify({"summary": summary})


@api.route("/expenses/export", methods=["GET"])
@login_required
def export_csv():
    rows = expenses().filtered(**expense_filters()).all()
    data = [{
        "Description": e.description,
        "Amount": e.amount,
        "Category": e.category.name if e.category else "",
        "Date": e.date.strftime('%Y-%m-%d')
    } for e in rows]
    df = pd.DataFrame(data, columns=["Description", "Amount", "Category", "Date"])
    buf = BytesIO()
    df.to_csv(buf, index=False)
    buf.seek(0)
    return send_file(buf, mimetype='text/csv', download_name='expenses.csv', as_attachment=True)


@api.route("/expenses/<int:expense_id>", methods=["GET"])
@login_required
def get_expense(expense_id):
    return jsonify({"expense": expenses().get(expense_id).to_dict()})


@api.route("/expenses/<int:expense_id>", methods=["PATCH", "PUT"])
@login_required
def update_expense(expense_id):
    form = ExpenseUpdateForm().validated()
    expense = expenses().update(expense_id, form.patch())
    return jsonify({"message": "Expense updated successfully", "expense": expense.to_dict()})


@api.route("/expenses/<int:expense_id>", methods=["DELETE"])
@login_required
def delete_expense(expense_id):
    expenses().delete(expense_id)
    return jsonify({"message": "Expense deleted successfully"})


# ---------------- Budgets ----------------
@api.route("/budgets", methods=["GET"])
@login_required
def list_budgets():
    return jsonify({"budgets": [b.to_dict() for b in budgets().list()]})


@api.route("/budgets", methods=["POST"])
@login_required
def create_budget():
    form = BudgetForm().validated()
    budget = budgets().create(
        amount=form.amount.data,
        category_id=form.category_id.data,
        start_date=form.start_date.data,
        end_date=form.end_date.data,
    )
    return jsonify({"message": "Budget created successfully", "budget": budget.to_dict()}), 201


@api.route("/budgets/<int:budget_id>", methods=["GET"])
@login_required
def get_budget(budget_id):
    return jsonify({"budget": budgets().get(budget_id).to_dict()})


@api.route("/budgets/<int:budget_id>", methods=["PATCH", "PUT"])
@login_required
def update_budget(budget_id):
    form = BudgetUpdateForm().validated()
    budget = budgets().update(budget_id, form.patch())
    return jsonify({"message": "Budget updated successfully", "budget": budget.to_dict()})


@api.route("/budgets/<int:budget_id>", methods=["DELETE"])
@login_required
def delete_budget(budget_id):
    budgets().delete(budget_id)
    return jsonify({"message": "Budget deleted successfully"})


@api.route("/budgets/<int:budget_id>/progress", methods=["GET"])
@login_required
def get_budget_progress(budget_id):
    return jsonify(budget_progress(db.session, current_user.id, budget_id))


# ---------------- App Factory ----------------
def create_app(config=Config):
    app = Flask(__name__)
    app.config.from_object(config)

    logging.basicConfig(level=app.config["LOG_LEVEL"])

    db.init_app(app)
    init_auth(app)
    register_error_handlers(app, db)

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(api)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    with app.app_context():
        db.create_all()
        logger.info("Database initialized")

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
