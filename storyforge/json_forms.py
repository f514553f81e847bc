"""Helpers for validating JSON request bodies with WTForms classes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import request
from werkzeug.datastructures import MultiDict


def bind_json_form(form_cls, payload: Optional[Any] = None):
    """Instantiate ``form_cls`` from a JSON body instead of submitted form data.

    CSRF is handled once per request by the application, so the form-level
    token check is switched off here.
    """

    if payload is None:
        payload = request.get_json(silent=True)
    formdata = MultiDict()
    if isinstance(payload, dict):
        for key, value in payload.items():
            if value is None or isinstance(value, (dict, list)):
                continue
            formdata[key] = value if isinstance(value, str) else str(value)
    return form_cls(formdata=formdata, meta={"csrf": False})


def form_error_details(form) -> List[Dict[str, str]]:
    return [
        {"field": field_name, "message": message}
        for field_name, messages in form.errors.items()
        for message in messages
    ]
