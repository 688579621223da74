from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from exceptions import ValidationError

STATUSES = ("enough", "low", "critical")
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("10000000000")
DEFAULT_UNIT = "units"
REPORT_PENDING = "pending"

# Suggestions offered by the purchase form; the column itself is free text
STORE_SUGGESTIONS = [
    "Coles",
    "Costco",
    "Woolworths",
    "Aldi",
    "Local Supplier",
    "Other",
]

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


# --- Input coercion ---

def require_text(value, field):
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", code="missing_field",
                              details={"field": field})
    return value.strip()


def optional_text(value, default=None):
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def coerce_int(value, field, default=None, minimum=None):
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", code="missing_field",
                              details={"field": field})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", code="invalid_field",
                              details={"field": field})
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be an integer", code="invalid_field",
                              details={"field": field})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", code="invalid_field",
                              details={"field": field})
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}",
                              code="invalid_field", details={"field": field})
    return number


def coerce_bool(value):
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValidationError(f"Cannot interpret {value!r} as a boolean",
                          code="invalid_field")


def coerce_money(value, field="cost"):
    """Parse a currency amount exactly; floats go through str() first."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required", code="missing_field",
                              details={"field": field})
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", code="invalid_field",
                              details={"field": field})
    if not amount.is_finite() or amount < 0 or amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} must be a non-negative amount below {MAX_AMOUNT}",
                              code="invalid_field", details={"field": field})
    # matches NUMERIC(12, 2) on PostgreSQL so both backends store the same value
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def coerce_day(value):
    """Accept a date, datetime or 'YYYY-MM-DD' string; return the string form."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD",
                              code="invalid_field", details={"field": "date"})


def coerce_check(entry, position):
    if not isinstance(entry, dict):
        raise ValidationError(f"Checklist entry {position} must be an object",
                              code="invalid_field")
    item_id = coerce_int(entry.get("item_id"), "item_id")
    status = entry.get("status")
    if status not in STATUSES:
        raise ValidationError(
            f"Checklist entry {position} has invalid status {status!r}",
            code="invalid_status",
            details={"item_id": item_id, "allowed": list(STATUSES)},
        )
    return {
        "item_id": item_id,
        "status": status,
        "is_urgent": coerce_bool(entry.get("is_urgent")),
    }


def coerce_checklist(items):
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list", code="invalid_field",
                              details={"field": "items"})
    checks = [coerce_check(entry, position) for position, entry in enumerate(items)]

    seen = set()
    for check in checks:
        if check["item_id"] in seen:
            raise ValidationError(
                f"Item {check['item_id']} appears more than once",
                code="duplicate_item",
                details={"item_id": check["item_id"]},
            )
        seen.add(check["item_id"])
    return checks


# --- Row normalisation (sqlite and psycopg2 hand back different types) ---

def _timestamp(value):
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    return value


def to_decimal(value):
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def item_row(row):
    row["is_core"] = bool(row["is_core"])
    return row


def check_row(row):
    row["is_urgent"] = bool(row["is_urgent"])
    row["checked_at"] = _timestamp(row.get("checked_at"))
    if "is_core" in row:
        row["is_core"] = bool(row["is_core"])
    return row


def purchase_row(row):
    row["cost"] = to_decimal(row["cost"])
    row["purchased_at"] = _timestamp(row.get("purchased_at"))
    return row


def report_row(row):
    row["submitted_at"] = _timestamp(row.get("submitted_at"))
    return row
