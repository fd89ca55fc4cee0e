"""
Form responses: required-field validation and prefilling.
"""

import time
from datetime import date, datetime, UTC
from typing import Any, Dict, Iterable, List, Optional

from .models import FieldType, FormResponse, FormTemplate, Person, TimesheetRecord


class FormValidationError(Exception):
    """Raised when required fields are missing; `missing` lists their labels."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required field(s): {', '.join(self.missing)}")


def _is_answered(field_type: FieldType, value: Any) -> bool:
    # An unchecked checkbox is a valid answer
    if field_type == FieldType.CHECKBOX:
        return value is not None
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, bool):
        return True
    return value is not None and str(value).strip() != ''


def missing_fields(template: FormTemplate, data: Dict[str, Any]) -> List[str]:
    """
    Return the labels of required fields without an answer, in form order.

    Read-only fields are never reported.
    """
    return [
        f.label
        for f in template.fields
        if f.required and not f.read_only and not _is_answered(f.type, data.get(f.id))
    ]


def build_response(
    template: FormTemplate,
    technician_id: str,
    data: Dict[str, Any],
    mission_id: Optional[str] = None,
) -> FormResponse:
    """
    Validate answers and wrap them in a FormResponse.

    Raises:
        FormValidationError: If required fields are missing
    """
    missing = missing_fields(template, data)
    if missing:
        raise FormValidationError(missing)

    return FormResponse(
        id=f"res-{int(time.time() * 1000)}",
        template_id=template.id,
        technician_id=technician_id,
        mission_id=mission_id,
        submitted_at=datetime.now(UTC).isoformat(),
        data=dict(data),
    )


def prefill(
    person: Person,
    mission: Optional[TimesheetRecord] = None,
    responses: Iterable[FormResponse] = (),
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Initial answers for a new form.

    An existing response to the mission is reused as is. Otherwise client
    details are copied from the latest response for the same job code.
    """
    responses = list(responses)
    today = today or date.today()

    if mission is not None:
        for response in responses:
            if response.mission_id == mission.id:
                return dict(response.data)

    data: Dict[str, Any] = {
        'rep_mounier': person.display_name,
        'date_effet': today.isoformat(),
        'acceptance_type': True,
    }
    if mission is None:
        return data

    previous = None
    for response in reversed(responses):
        if response.data.get('job_number') == mission.job_code:
            previous = response
            break

    data['job_number'] = mission.job_code
    for key in ('client_name', 'job_label', 'cmd_number'):
        data[key] = previous.data.get(key, '') if previous else ''
    return data
