"""
Tests for form response validation and prefilling.
"""

from datetime import date

import pytest

from planit.defaults import default_templates
from planit.forms import FormValidationError, build_response, missing_fields, prefill
from planit.models import (
    FieldType,
    FormField,
    FormResponse,
    FormTemplate,
    Person,
    TimesheetRecord,
)


@pytest.fixture
def template():
    return FormTemplate(
        id='tpl',
        name='Test',
        fields=[
            FormField('client_name', 'Client', FieldType.TEXT, True),
            FormField('accepted', 'Accepté', FieldType.CHECKBOX, True),
            FormField('photos', 'Photos', FieldType.PHOTO_GALLERY, True),
            FormField('ref', 'Référence', FieldType.TEXT, True, read_only=True),
            FormField('notes', 'Notes', FieldType.TEXTAREA, False),
        ],
    )


class TestMissingFields:
    """Tests for missing_fields function."""

    def test_all_missing(self, template):
        assert missing_fields(template, {}) == ['Client', 'Accepté', 'Photos']

    def test_unchecked_checkbox_is_an_answer(self, template):
        data = {'client_name': 'ACME', 'accepted': False, 'photos': ['a']}
        assert missing_fields(template, data) == []

    def test_blank_text_and_empty_list(self, template):
        data = {'client_name': '   ', 'accepted': True, 'photos': []}
        assert missing_fields(template, data) == ['Client', 'Photos']


class TestBuildResponse:
    """Tests for build_response function."""

    def test_valid(self, template):
        data = {'client_name': 'ACME', 'accepted': True, 'photos': ['a']}
        response = build_response(template, 'tech01', data, mission_id='m1')

        assert response.id.startswith('res-')
        assert response.template_id == 'tpl'
        assert response.mission_id == 'm1'
        assert response.data == data
        assert 'T' in response.submitted_at

    def test_missing_raises(self, template):
        with pytest.raises(FormValidationError) as exc_info:
            build_response(template, 'tech01', {'accepted': True, 'photos': ['a']})
        assert exc_info.value.missing == ['Client']
        assert 'Client' in str(exc_info.value)


class TestPrefill:
    """Tests for prefill function."""

    @pytest.fixture
    def person(self):
        return Person(id='tech01', display_name='Technicien 1')

    @pytest.fixture
    def mission(self):
        return TimesheetRecord(id='m2', date=date(2024, 3, 4), job_code='AB-1',
                               work_hours=8, technician_id='tech01')

    def test_without_mission(self, person):
        data = prefill(person, today=date(2024, 3, 4))
        assert data == {
            'rep_mounier': 'Technicien 1',
            'date_effet': '2024-03-04',
            'acceptance_type': True,
        }

    def test_copies_latest_response_for_same_job(self, person, mission):
        responses = [
            FormResponse(id='r1', template_id='tpl', technician_id='x', submitted_at='',
                         data={'job_number': 'AB-1', 'client_name': 'Old'}),
            FormResponse(id='r2', template_id='tpl', technician_id='x', submitted_at='',
                         data={'job_number': 'AB-1', 'client_name': 'ACME', 'cmd_number': 'C9'}),
            FormResponse(id='r3', template_id='tpl', technician_id='x', submitted_at='',
                         data={'job_number': 'ZZ', 'client_name': 'Other'}),
        ]

        data = prefill(person, mission, responses, today=date(2024, 3, 4))

        assert data['job_number'] == 'AB-1'
        assert data['client_name'] == 'ACME'
        assert data['cmd_number'] == 'C9'
        assert data['job_label'] == ''

    def test_existing_response_for_mission_reused(self, person, mission):
        existing = FormResponse(id='r1', template_id='tpl', technician_id='tech01',
                                submitted_at='', mission_id='m2', data={'client_name': 'Kept'})
        assert prefill(person, mission, [existing]) == {'client_name': 'Kept'}


class TestDefaultTemplates:

    def test_acceptance_report_fields(self):
        templates = {t.id: t for t in default_templates()}
        report = templates['tpl-pv-rec-mounier']
        assert report.get_field('acceptance_type').type == FieldType.CHECKBOX
        assert len(report.fields) == 12
        assert 'Client' in missing_fields(report, prefill(Person(id='tech01')))
