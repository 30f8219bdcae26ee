"""
Semantic field types.

Every registry field carries one ``SemanticType``.  The type owns the
behaviour that differs per kind of value:

    transform(raw)     spreadsheet cell → storage value (raises ValueError
                       for unparsable numbers)
    validators(field)  type-specific checks appended after the required check
    sample(field)      example value written into templates
    placeholder(field) value used when a stub record needs a required field
    to_cell(value)     storage value → spreadsheet cell

Validators are plain callables ``(value) -> str | None`` returning an error
message, or None when the value passes.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from decimal import Decimal as _Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email
from openpyxl.utils.datetime import from_excel

PHONE_PATTERN = re.compile(r"^\+?[\d\s\-\(\)]{10,}$")

_TRUE_WORDS = frozenset({"true", "1", "yes", "y", "on"})

# Text timestamps that are not ISO-8601, tried in order
_DATETIME_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d",
    "%d.%m.%Y",
)


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# xlsx date cells hold milliseconds; stored timestamps keep no finer detail
def to_millis(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utc_now() -> datetime:
    return to_millis(datetime.now(timezone.utc).replace(tzinfo=None))


def _split_list(value) -> list[str]:
    if _is_blank(value):
        return []
    if isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if not _is_blank(item)]


# ── Validator factories ─────────────────────────────────────────────────

def required_validator(field_name):
    def _check(value):
        if _is_blank(value):
            return f"{field_name} is required"
        return None
    return _check


def email_format_validator(field_name):
    def _check(value):
        if _is_blank(value):
            return None
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            return f"{field_name} must be a valid email address"
        return None
    return _check


def phone_format_validator(field_name):
    def _check(value):
        if _is_blank(value):
            return None
        if not PHONE_PATTERN.match(str(value)):
            return f"{field_name} must be a valid phone number"
        return None
    return _check


def enum_domain_validator(field_name, domain):
    allowed = ", ".join(domain)

    def _check(value):
        if _is_blank(value):
            return None
        if value not in domain:
            return f"{field_name} must be one of: {allowed}"
        return None
    return _check


def max_length_validator(field_name, max_length):
    def _check(value):
        if isinstance(value, str) and len(value) > max_length:
            return f"{field_name} must be {max_length} characters or less"
        return None
    return _check


def range_validator(field_name, low, high):
    def _check(value):
        if value is None:
            return None
        if value < low or value > high:
            return f"{field_name} must be between {low} and {high}"
        return None
    return _check


# ═══════════════════════════════════════════════════════════════
# TYPES
# ═══════════════════════════════════════════════════════════════

class SemanticType:
    name = "Text"

    def transform(self, value, field=None):
        return value

    def validators(self, field) -> list:
        return []

    def sample(self, field):
        return f"Sample {field.name}"

    def placeholder(self, field):
        return "Seed"

    def to_cell(self, value):
        return value

    def __repr__(self):
        return f"<{self.name}>"


class Text(SemanticType):
    name = "Text"

    def transform(self, value, field=None):
        if _is_blank(value):
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value).strip()

    def validators(self, field):
        if field.max_length:
            return [max_length_validator(field.name, field.max_length)]
        return []


class Email(Text):
    name = "Email"

    def transform(self, value, field=None):
        text = super().transform(value, field)
        return text.lower() if text else text

    def validators(self, field):
        return [email_format_validator(field.name)] + super().validators(field)

    def sample(self, field):
        return "sample@example.com"

    def placeholder(self, field):
        return "seed@example.com"


class Phone(Text):
    name = "Phone"

    def validators(self, field):
        return [phone_format_validator(field.name)] + super().validators(field)

    def sample(self, field):
        return "555-555-0100"

    def placeholder(self, field):
        return "555-555-0100"


class Integer(SemanticType):
    name = "Integer"

    def __init__(self, percent=False):
        self.percent = percent

    def transform(self, value, field=None):
        if _is_blank(value):
            return None
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float, _Decimal)):
            return int(value)
        text = str(value).strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))

    def validators(self, field):
        if self.percent:
            return [range_validator(field.name, 0, 100)]
        return []

    def sample(self, field):
        return 0 if self.percent else 1

    def placeholder(self, field):
        return 0


class Decimal(SemanticType):
    name = "Decimal"

    def __init__(self, percent=False):
        self.percent = percent

    def transform(self, value, field=None):
        if _is_blank(value):
            return None
        try:
            number = _Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"invalid decimal value {value!r}") from None
        if not number.is_finite():
            raise ValueError(f"invalid decimal value {value!r}")
        return number

    def validators(self, field):
        if self.percent:
            return [range_validator(field.name, 0, 100)]
        return []

    def sample(self, field):
        return _Decimal("100.00")

    def placeholder(self, field):
        return _Decimal("0")

    def to_cell(self, value):
        return float(value) if value is not None else None


class Boolean(SemanticType):
    name = "Boolean"

    def transform(self, value, field=None):
        if _is_blank(value):
            return None
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        return str(value).strip().lower() in _TRUE_WORDS

    def sample(self, field):
        return True

    def placeholder(self, field):
        return False


class Timestamp(SemanticType):
    name = "Timestamp"

    def transform(self, value, field=None):
        parsed = self._parse(value)
        return to_millis(parsed) if parsed is not None else None

    def _parse(self, value):
        if _is_blank(value):
            return None
        if isinstance(value, datetime):
            return _naive_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, (int, float)):
            # Raw Excel serial date (cell not formatted as a date)
            try:
                return from_excel(value)
            except (ValueError, OverflowError):
                return None
        text = str(value).strip()
        try:
            return _naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
        for fmt in _DATETIME_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return None

    def sample(self, field):
        return datetime(2025, 1, 1)

    def placeholder(self, field):
        return utc_now()

    def to_cell(self, value):
        if isinstance(value, datetime):
            return _naive_utc(value)
        return value


class StringSet(SemanticType):
    name = "StringSet"

    def transform(self, value, field=None):
        return _split_list(value)

    def sample(self, field):
        return ["item1", "item2"]

    def placeholder(self, field):
        return []

    def to_cell(self, value):
        if not value:
            return None
        return ",".join(str(item) for item in value)


class EnumValue(Text):
    name = "EnumValue"

    def transform(self, value, field=None):
        text = super().transform(value, field)
        return text.upper() if text else text

    def validators(self, field):
        return [enum_domain_validator(field.name, field.enum_domain)]

    def sample(self, field):
        return field.enum_domain[0]

    def placeholder(self, field):
        return field.enum_domain[0]


class EnumSet(StringSet):
    """Comma-separated subset of a domain; unknown members are dropped."""
    name = "EnumSet"

    def transform(self, value, field=None):
        items = [item.upper() for item in _split_list(value)]
        if field is not None and field.enum_domain:
            items = [item for item in items if item in field.enum_domain]
        return items

    def sample(self, field):
        return [field.enum_domain[0]]


class JsonBlob(SemanticType):
    name = "JsonBlob"

    def transform(self, value, field=None):
        if _is_blank(value):
            return None
        if isinstance(value, (dict, list)):
            return value
        try:
            return json.loads(str(value))
        except ValueError:
            return None

    def sample(self, field):
        return {"key": "value"}

    def placeholder(self, field):
        return None

    def to_cell(self, value):
        if value is None:
            return None
        return json.dumps(value)
