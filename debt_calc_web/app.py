import os
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional
from uuid import uuid4

from flask import Flask, jsonify, request, session

from debt_calc.data_models import INTEREST_PERIODS
from debt_calc.engine import compute_balance_history, generate_chart_series, summarize_debt
from debt_calc.utils import decimal_from_str, parse_date, quantize_cents
from debt_calc_web.store import create_store_from_env, debt_from_record, payments_from_record

DEFAULT_INTEREST_PERIOD = "monthly"

# Stored scale of the interest_rate column.
RATE_QUANTUM = Decimal("0.0001")


class ValidationError(ValueError):
    """Raised when a request body does not describe a valid debt or payment."""


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _parse_amount_field(value: Any, label: str, quantum: Optional[Decimal] = None) -> Decimal:
    """Parse a numeric field, rounded to the scale it is stored with (cents by default)."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{label} is required")
    try:
        amount = decimal_from_str(str(value))
    except ValueError:
        raise ValidationError(f"{label} must be a number")
    try:
        if quantum is None:
            return quantize_cents(amount)
        return amount.quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{label} is too large")


def _parse_date_field(value: Any, label: str) -> date:
    if not value:
        raise ValidationError(f"{label} is required")
    try:
        return parse_date(str(value))
    except ValueError:
        raise ValidationError(f"{label} must be a date in YYYY-MM-DD format")


def _parse_debt_fields(body: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """Validate the debt fields of a request body.

    With ``partial`` set only the fields present in ``body`` are checked and
    returned; otherwise name, principal, rate and start date are required.
    """
    fields: Dict[str, Any] = {}

    if "name" in body or not partial:
        name = body.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Debt name is required" if not partial else "Debt name must be a non-empty string")
        fields["name"] = name.strip()

    if "principal" in body or not partial:
        principal = _parse_amount_field(body.get("principal"), "Principal amount")
        if principal <= 0:
            raise ValidationError("Principal amount must be greater than 0")
        fields["principal"] = principal

    if "interest_rate" in body or not partial:
        rate = _parse_amount_field(body.get("interest_rate"), "Interest rate", RATE_QUANTUM)
        if rate < 0:
            raise ValidationError("Interest rate must be greater than or equal to 0")
        fields["interest_rate"] = rate

    if "interest_period" in body or not partial:
        period = body.get("interest_period")
        if not period and not partial:
            period = DEFAULT_INTEREST_PERIOD
        if period not in INTEREST_PERIODS:
            raise ValidationError(f"Interest period must be one of: {', '.join(INTEREST_PERIODS)}")
        fields["interest_period"] = period

    if "start_date" in body or not partial:
        fields["start_date"] = _parse_date_field(body.get("start_date"), "Start date")

    if body.get("interest_start_date"):
        fields["interest_start_date"] = _parse_date_field(body["interest_start_date"], "Interest start date")

    return fields


def _debt_view(record: Dict[str, Any], today: date) -> Dict[str, Any]:
    debt = debt_from_record(record)
    history = compute_balance_history(debt, payments_from_record(record), today)
    return dict(record, current_balance=float(history[-1].balance))


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config["SECRET_KEY"] = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["DATABASE_URL"] = os.environ.get("DEBT_DATABASE_URL")
    if config:
        app.config.update(config)
    store = create_store_from_env(app.config["DATABASE_URL"])
    app.extensions["debt_store"] = store

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        app.logger.info("Rejected request to %s: %s", request.path, exc)
        return _error(str(exc), 400)

    @app.get("/api/debts")
    def list_debts():
        user_token = _ensure_user_token()
        today = date.today()
        return jsonify([_debt_view(record, today) for record in store.list_debts(user_token)])

    @app.post("/api/debts")
    def create_debt():
        user_token = _ensure_user_token()
        fields = _parse_debt_fields(request.get_json(silent=True) or {}, partial=False)
        interest_start = fields.get("interest_start_date", fields["start_date"])
        if interest_start < fields["start_date"]:
            raise ValidationError("Interest start date cannot be before the start date")
        record = store.add_debt(
            user_token,
            fields["name"],
            fields["principal"],
            fields["interest_rate"],
            fields["interest_period"],
            fields["start_date"],
            interest_start,
        )
        app.logger.info("Created debt %s", record["id"])
        return jsonify(_debt_view(record, date.today())), 201

    @app.put("/api/debts")
    def update_debt():
        user_token = _ensure_user_token()
        body = request.get_json(silent=True) or {}
        debt_id = body.get("id")
        if not debt_id:
            return _error("Debt ID is required", 400)
        existing = store.get_debt(user_token, debt_id)
        if existing is None:
            return _error("Debt not found", 404)
        fields = _parse_debt_fields(body, partial=True)
        start = fields.get("start_date") or parse_date(existing["start_date"])
        interest_start = fields.get("interest_start_date") or parse_date(existing["interest_start_date"])
        if "start_date" in fields and "interest_start_date" not in fields and interest_start < start:
            # Moving the start date past the old interest start drags it along
            interest_start = start
            fields["interest_start_date"] = start
        if interest_start < start:
            raise ValidationError("Interest start date cannot be before the start date")
        first_payment = min((p["date"] for p in existing["payments"]), default=None)
        if first_payment and parse_date(first_payment) < start:
            raise ValidationError("Start date cannot be after the first payment")
        record = store.update_debt(user_token, debt_id, **fields)
        return jsonify(_debt_view(record, date.today()))

    @app.delete("/api/debts")
    def delete_debt():
        user_token = _ensure_user_token()
        debt_id = request.args.get("id")
        if not debt_id:
            return _error("Debt ID is required", 400)
        if not store.remove_debt(user_token, debt_id):
            return _error("Debt not found", 404)
        app.logger.info("Deleted debt %s", debt_id)
        return jsonify({"success": True})

    @app.post("/api/debts/<debt_id>/payments")
    def add_payment(debt_id):
        user_token = _ensure_user_token()
        record = store.get_debt(user_token, debt_id)
        if record is None:
            return _error("Debt not found", 404)
        body = request.get_json(silent=True) or {}
        payment_date = _parse_date_field(body.get("date"), "Payment date")
        amount = _parse_amount_field(body.get("amount"), "Payment amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")
        debt = debt_from_record(record)
        if payment_date < debt.start_date:
            raise ValidationError("Payment date cannot be before the debt's start date")
        if payment_date > date.today():
            raise ValidationError("Payment date cannot be in the future")
        prior = [p for p in payments_from_record(record) if p.date <= payment_date]
        balance_due = compute_balance_history(debt, prior, payment_date)[-1].balance
        if amount > balance_due:
            raise ValidationError(f"Payment amount exceeds the remaining balance of {balance_due}")
        payment = store.add_payment(user_token, debt_id, payment_date, amount)
        return jsonify(payment), 201

    @app.delete("/api/debts/<debt_id>/payments/<payment_id>")
    def delete_payment(debt_id, payment_id):
        user_token = _ensure_user_token()
        if not store.remove_payment(user_token, debt_id, payment_id):
            return _error("Payment not found", 404)
        return jsonify({"success": True})

    @app.get("/api/debts/<debt_id>/history")
    def debt_history(debt_id):
        user_token = _ensure_user_token()
        record = store.get_debt(user_token, debt_id)
        if record is None:
            return _error("Debt not found", 404)
        today_param = request.args.get("today")
        today = _parse_date_field(today_param, "today") if today_param else date.today()
        debt = debt_from_record(record)
        payments = payments_from_record(record)
        history = compute_balance_history(debt, payments, today)
        series = generate_chart_series(debt, payments, today)
        return jsonify(
            {
                "history": [{"date": p.date.isoformat(), "balance": float(p.balance)} for p in history],
                "chart": {
                    "cadence": series.cadence,
                    "labels": series.labels,
                    "dates": [d.isoformat() for d in series.dates],
                    "balances": [float(b) for b in series.balances],
                },
                "summary": summarize_debt(debt, payments, today),
            }
        )

    @app.get("/api/categories")
    def list_categories():
        user_token = _ensure_user_token()
        return jsonify(store.list_categories(user_token))

    @app.post("/api/categories")
    def add_category():
        user_token = _ensure_user_token()
        body = request.get_json(silent=True) or {}
        name = body.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Category name is required")
        category = store.get_or_create_category(user_token, name)
        status = 201 if category.pop("created") else 200
        return jsonify(category), status

    return app


if __name__ == "__main__":
    print("Starting debt tracker web app...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
