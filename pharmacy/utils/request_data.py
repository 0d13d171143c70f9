"""Request body and query-string helpers shared by the API blueprints."""
from datetime import datetime, time
from typing import Any, Dict, Optional

from flask import request

from pharmacy.exceptions import ValidationError
from pharmacy.utils.number_format import parse_date


def get_json_body() -> Dict[str, Any]:
    """Return the JSON object sent with the request ({} when the body is empty)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


def parse_bool_arg(name: str) -> Optional[bool]:
    """Read a true/false query arg; missing or empty means None."""
    value = request.args.get(name, '').strip().lower()
    if not value:
        return None
    if value in ('1', 'true', 'yes'):
        return True
    if value in ('0', 'false', 'no'):
        return False
    raise ValidationError(f'{name} must be true or false')


def parse_date_range():
    """
    Read start_date/end_date query args as a datetime range.

    end_date is inclusive, so it is pushed to the end of that day. Returns
    (None, None) unless both are present.
    """
    start = request.args.get('start_date')
    end = request.args.get('end_date')
    if not start or not end:
        return None, None
    start_dt = datetime.combine(parse_date(start, 'start_date'), time.min)
    end_dt = datetime.combine(parse_date(end, 'end_date'), time.max)
    if start_dt > end_dt:
        raise ValidationError('start_date must be before end_date')
    return start_dt, end_dt
