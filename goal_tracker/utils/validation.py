"""
Validation utilities for JSON-compatible records

Records arrive from the backend or from the local store as plain mappings.
Required fields raise MalformedRecord; optional fields fall back to a default.
"""
import copy
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Union

JsonValue = Union[str, int, float, bool, None, list["JsonValue"], dict[str, "JsonValue"]]

_MISSING = object()


class MalformedRecord(ValueError):
    """Обязательное поле записи отсутствует или имеет неверный тип"""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


def ensure_aware(value: datetime) -> datetime:
    """
    Naive datetime считается UTC

    Example:
        >>> ensure_aware(datetime(2024, 1, 1))
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: str) -> datetime:
    """
    Разобрать ISO-8601 строку (с суффиксом Z, смещением или без зоны)

    Raises:
        ValueError: если строка не является ISO-8601 датой
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def format_timestamp(value: datetime) -> str:
    """Сериализовать datetime в ISO-8601 в UTC (строки сортируются по времени)"""
    return ensure_aware(value).astimezone(timezone.utc).isoformat()


def is_number(value: Any) -> bool:
    # bool is an int subclass but never a JSON number
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _to_float(value: Any) -> float | None:
    # ints beyond the float range are not representable amounts
    try:
        return float(value)
    except OverflowError:
        return None


def is_json_value(value: Any) -> bool:
    """Проверить что значение принадлежит замкнутому JSON-варианту"""
    if value is None or isinstance(value, (str, bool)):
        return True
    if isinstance(value, (int, float)):
        return is_number(value)
    if isinstance(value, list):
        return all(is_json_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_json_value(v) for k, v in value.items())
    return False


def _qualified(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def require_str(record: Mapping[str, Any], key: str, prefix: str = "") -> str:
    value = record.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise MalformedRecord(_qualified(prefix, key), "обязательное поле отсутствует")
    if not isinstance(value, str):
        raise MalformedRecord(_qualified(prefix, key), f"ожидалась строка, получено {type(value).__name__}")
    return value


def require_number(record: Mapping[str, Any], key: str, prefix: str = "") -> float:
    value = record.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise MalformedRecord(_qualified(prefix, key), "обязательное поле отсутствует")
    if not is_number(value):
        raise MalformedRecord(_qualified(prefix, key), f"ожидалось число, получено {type(value).__name__}")
    number = _to_float(value)
    if number is None:
        raise MalformedRecord(_qualified(prefix, key), "число вне диапазона")
    return number


def require_timestamp(record: Mapping[str, Any], key: str, prefix: str = "") -> datetime:
    raw = require_str(record, key, prefix)
    try:
        return parse_timestamp(raw)
    except ValueError:
        raise MalformedRecord(_qualified(prefix, key), f"некорректная дата: {raw!r}") from None


def optional_str(record: Mapping[str, Any], key: str, default: str | None = None) -> str | None:
    value = record.get(key)
    return value if isinstance(value, str) else default


def optional_number(record: Mapping[str, Any], key: str, default: float | None = None) -> float | None:
    value = record.get(key)
    number = _to_float(value) if is_number(value) else None
    return default if number is None else number


def optional_int(record: Mapping[str, Any], key: str, default: int) -> int:
    value = record.get(key)
    number = _to_float(value) if is_number(value) else None
    if number is not None and number.is_integer():
        return int(value)
    return default


def optional_bool(record: Mapping[str, Any], key: str, default: bool) -> bool:
    value = record.get(key)
    return value if isinstance(value, bool) else default


def optional_timestamp(record: Mapping[str, Any], key: str) -> datetime | None:
    value = record.get(key)
    if not isinstance(value, str):
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def optional_json_object(record: Mapping[str, Any], key: str) -> dict[str, JsonValue] | None:
    value = record.get(key)
    if isinstance(value, dict) and is_json_value(value):
        return copy.deepcopy(value)
    return None
