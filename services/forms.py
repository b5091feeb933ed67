# services/forms.py

import math
from datetime import datetime
from typing import Any, Dict, Mapping

from config import ORDER_AMOUNT_MIN, ORDER_AMOUNT_MAX
from exceptions import ValidationFailed


def _text(form: Mapping[str, Any], key: str) -> str:
    return (form.get(key) or "").strip()


def _require(errors: dict, key: str, value: str, label: str, min_len: int = 0) -> None:
    if not value:
        errors[key] = f"{label} is required"
    elif min_len and len(value) < min_len:
        errors[key] = f"{label} must be at least {min_len} characters"


def parse_order_form(form: Mapping[str, Any]) -> Dict[str, Any]:
    errors: Dict[str, str] = {}

    customer = _text(form, "customer")
    category = _text(form, "category")
    order_date = _text(form, "date")
    source = _text(form, "source")
    geo = _text(form, "geo")
    raw_amount = _text(form, "amount")

    _require(errors, "customer", customer, "Customer name", 2)
    _require(errors, "category", category, "Category")
    _require(errors, "date", order_date, "Order date")
    _require(errors, "source", source, "Source", 2)
    _require(errors, "geo", geo, "Location", 2)

    if order_date and "date" not in errors:
        try:
            datetime.strptime(order_date, "%Y-%m-%d")
        except ValueError:
            errors["date"] = "Order date must be YYYY-MM-DD"

    amount = 0.0
    if not raw_amount:
        errors["amount"] = "Amount is required"
    else:
        try:
            value = float(raw_amount)
        except ValueError:
            value = math.nan
        if math.isnan(value) or math.isinf(value):
            errors["amount"] = "Amount must be a number"
        elif value < ORDER_AMOUNT_MIN or value > ORDER_AMOUNT_MAX:
            # bounds apply to the raw value, rounding only after
            errors["amount"] = f"Amount must be between {ORDER_AMOUNT_MIN:g} and {ORDER_AMOUNT_MAX:g}"
        else:
            amount = round(value, 2)

    if errors:
        raise ValidationFailed(errors)

    return {
        "customer": customer,
        "category": category,
        "date": order_date,
        "source": source,
        "geo": geo,
        "amount": amount,
    }


def parse_category_form(form: Mapping[str, Any]) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    name = _text(form, "name")
    _require(errors, "name", name, "Category name", 2)
    if errors:
        raise ValidationFailed(errors)

    out = {"name": name}
    description = _text(form, "description")
    if description:
        out["description"] = description
    return out


def parse_register_form(form: Mapping[str, Any]) -> Dict[str, Any]:
    errors: Dict[str, str] = {}
    fields = {k: _text(form, k) for k in ("name", "lastname", "email", "password")}
    _require(errors, "name", fields["name"], "First name")
    _require(errors, "lastname", fields["lastname"], "Last name")
    _require(errors, "email", fields["email"], "Email")
    _require(errors, "password", fields["password"], "Password")
    if fields["email"] and "@" not in fields["email"]:
        errors["email"] = "Email is not valid"
    if errors:
        raise ValidationFailed(errors)
    return fields
