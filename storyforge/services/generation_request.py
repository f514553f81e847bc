"""Shape validation for story generation requests.

The same validator runs in the browser-side gate and on the server, so it is
built on a plain :class:`wtforms.Form` that needs no application context.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField
from wtforms.validators import UUID, DataRequired, Length

from ..errors import ValidationError

PROMPT_MAX_LENGTH = 2000
TONE_MAX_LENGTH = 50

# Wire names mapped to form field names.
_FIELD_NAMES = {
    "prompt": "prompt",
    "tone": "tone",
    "projectId": "project_id",
    "chapterId": "chapter_id",
}


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class GenerationRequestForm(Form):
    prompt = StringField(
        "Prompt",
        filters=[_strip],
        validators=[DataRequired(), Length(min=1, max=PROMPT_MAX_LENGTH)],
    )
    tone = StringField(
        "Tone",
        filters=[_strip],
        validators=[DataRequired(), Length(min=1, max=TONE_MAX_LENGTH)],
    )
    project_id = StringField("Project", validators=[DataRequired(), UUID(message="Invalid uuid.")])
    chapter_id = StringField("Chapter", validators=[DataRequired(), UUID(message="Invalid uuid.")])


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    tone: str
    project_id: str
    chapter_id: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "prompt": self.prompt,
            "tone": self.tone,
            "projectId": self.project_id,
            "chapterId": self.chapter_id,
        }


def validate_generation_payload(payload: Any) -> GenerationRequest:
    """Return a trimmed :class:`GenerationRequest` or raise ``ValidationError``.

    Unknown keys are ignored. Every offending field is reported, not just the
    first one.
    """

    if not isinstance(payload, Mapping):
        raise ValidationError([{"field": "body", "message": "Expected a JSON object."}])

    details: List[Dict[str, str]] = []
    formdata = MultiDict()
    for wire_name, field_name in _FIELD_NAMES.items():
        value = payload.get(wire_name)
        if value is None:
            continue
        if not isinstance(value, str):
            details.append({"field": wire_name, "message": "Expected string."})
            continue
        formdata[field_name] = value

    form = GenerationRequestForm(formdata=formdata)
    form.validate()
    reported = {item["field"] for item in details}
    for wire_name, field_name in _FIELD_NAMES.items():
        if wire_name in reported:
            continue
        for message in form.errors.get(field_name, []):
            details.append({"field": wire_name, "message": message})

    if details:
        raise ValidationError(details)

    return GenerationRequest(
        prompt=form.prompt.data,
        tone=form.tone.data,
        project_id=str(uuid.UUID(form.project_id.data)),
        chapter_id=str(uuid.UUID(form.chapter_id.data)),
    )
