"""Request parsing shared by the API blueprints."""

import math
from typing import Any, Dict, Optional

from flask import request
from flask_login import current_user

from ..domain.models import from_epoch_ms
from ..errors import BadRequest


def json_body() -> Dict[str, Any]:
    """The request's JSON object, or an empty dict for missing or non-object bodies."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def current_user_id() -> str:
    return str(current_user.id)


def parse_float(value: Any, name: str) -> float:
    """Coerce a required numeric input, rejecting NaN and infinities."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequest('BAD_REQUEST', f'{name} must be a number')
    if math.isnan(number) or math.isinf(number):
        raise BadRequest('BAD_REQUEST', f'{name} must be a number')
    return number


def optional_float(value: Any, name: str, default: Optional[float] = None) -> Optional[float]:
    if value is None or value == '':
        return default
    return parse_float(value, name)


def optional_positive(value: Any, name: str, default: float) -> float:
    """Like ``optional_float`` but falls back to ``default`` for values <= 0."""
    number = optional_float(value, name, default)
    return number if number and number > 0 else default


def optional_epoch_ms(value: Any, name: str) -> Optional[float]:
    """An optional epoch-milliseconds timestamp that ``datetime`` can represent."""
    number = optional_float(value, name)
    if number is None:
        return None
    try:
        from_epoch_ms(number)
    except (OverflowError, OSError, ValueError):
        raise BadRequest('BAD_REQUEST', f'{name} must be epoch milliseconds')
    return number
