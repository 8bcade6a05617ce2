"""
Integration tests for the /api/service endpoints.
"""

import pytest

from app import app as _app
from service_routes import _grants


@pytest.fixture
def app_client():
    _app.config['TESTING'] = True
    _grants.clear()
    with _app.test_client() as client:
        yield client


def _post(client, url, body):
    return client.post(url, json=body)


@pytest.fixture
def catalog(app_client):
    """Category, two tasks and a preset created over the API."""
    category = _post(app_client, '/api/service/categories', {'name': 'Engine'}).get_json()
    oil = _post(app_client, '/api/service/tasks', {
        'name': 'Oil Change', 'category_id': category['id'], 'auto_apply': True,
    }).get_json()
    belt = _post(app_client, '/api/service/tasks', {'name': 'Belt Inspection'}).get_json()
    preset = _post(app_client, '/api/service/presets', {
        'name': 'Standard Ladder', 'intervals': [50, 100, 250, 500],
    }).get_json()
    return {'category': category, 'oil': oil, 'belt': belt, 'preset': preset}


@pytest.fixture
def mower(app_client, catalog):
    template = _post(app_client, '/api/service/templates', {
        'name': 'Mower',
        'preset_id': catalog['preset']['id'],
        'tasks': [
            {'task_id': catalog['oil']['id']},
            {'task_id': catalog['belt']['id'], 'intervals': [250, 75]},
        ],
    }).get_json()
    equipment = _post(app_client, '/api/service/equipment', {
        'name': 'Mower 1', 'serial_number': 'MX-100', 'current_hours': 245, 'template_id': template['id'],
    }).get_json()
    return {'template': template, 'equipment': equipment}


class TestHealth:
    def test_health(self, app_client):
        assert app_client.get('/health').get_json() == {'status': 'ok'}


class TestCatalogEndpoints:
    def test_category_crud(self, app_client):
        resp = _post(app_client, '/api/service/categories', {'name': 'Hydraulics'})
        assert resp.status_code == 201
        cat_id = resp.get_json()['id']
        assert app_client.put(f'/api/service/categories/{cat_id}', json={'color': '#000000'}).status_code == 200
        assert app_client.get('/api/service/categories').get_json()[0]['color'] == '#000000'
        assert app_client.delete(f'/api/service/categories/{cat_id}').status_code == 200
        assert app_client.delete(f'/api/service/categories/{cat_id}').status_code == 404

    def test_validation_error_is_400(self, app_client):
        resp = _post(app_client, '/api/service/tasks', {'name': ''})
        assert resp.status_code == 400
        assert 'required' in resp.get_json()['error']

    def test_tasks_filtered_by_category(self, app_client, catalog):
        cat_id = catalog['category']['id']
        tasks = app_client.get(f'/api/service/tasks?category={cat_id}').get_json()
        assert [t['name'] for t in tasks] == ['Oil Change']
        tasks = app_client.get('/api/service/tasks?category=uncategorized').get_json()
        assert [t['name'] for t in tasks] == ['Belt Inspection']

    def test_parse_intervals(self, app_client):
        resp = _post(app_client, '/api/service/presets/parse', {'text': '250, x, 50', 'existing': [100]})
        assert resp.get_json() == {'intervals': [50, 100, 250]}

    def test_preset_in_use_cannot_be_deleted(self, app_client, catalog, mower):
        resp = app_client.delete(f"/api/service/presets/{catalog['preset']['id']}")
        assert resp.status_code == 400


class TestTemplateEndpoints:
    def test_create_from_wizard_payload(self, app_client, catalog, mower):
        template = mower['template']
        assert template['intervals'] == [50, 100, 250, 500]
        tasks = app_client.get(f"/api/service/templates/{template['id']}/tasks").get_json()
        assignments = {a['task_id']: a['intervals'] for a in tasks}
        # Intervals outside the ladder are dropped
        assert assignments == {catalog['oil']['id']: [50, 100, 250, 500], catalog['belt']['id']: [250]}

    def test_create_requires_name(self, app_client, catalog):
        resp = _post(app_client, '/api/service/templates', {'preset_id': catalog['preset']['id']})
        assert resp.status_code == 400

    def test_create_task_without_id_is_400(self, app_client, catalog):
        resp = _post(app_client, '/api/service/templates', {
            'name': 'Mower', 'preset_id': catalog['preset']['id'], 'tasks': [{'intervals': [50]}],
        })
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'task_id is required'

    def test_create_with_unknown_task_is_400(self, app_client, catalog):
        resp = _post(app_client, '/api/service/templates', {
            'name': 'Mower', 'preset_id': catalog['preset']['id'], 'tasks': [{'task_id': 9999}],
        })
        assert resp.status_code == 400
        assert app_client.get('/api/service/templates').get_json() == []

    def test_toggle_last_interval_removes_task(self, app_client, catalog, mower):
        template_id = mower['template']['id']
        tasks = app_client.get(f'/api/service/templates/{template_id}/tasks').get_json()
        belt = next(a for a in tasks if a['task_id'] == catalog['belt']['id'])

        resp = _post(app_client, f"/api/service/template-tasks/{belt['id']}/toggle", {'interval': 250})
        assert resp.get_json() == {'assignment': None, 'removed': True}
        available = app_client.get(f'/api/service/templates/{template_id}/available-tasks').get_json()
        assert [t['id'] for t in available] == [catalog['belt']['id']]

    def test_add_task_to_template(self, app_client, catalog):
        template = _post(app_client, '/api/service/templates', {
            'name': 'Empty', 'preset_id': catalog['preset']['id'],
        }).get_json()
        resp = _post(app_client, f"/api/service/templates/{template['id']}/tasks", {'task_id': catalog['oil']['id']})
        assert resp.status_code == 201
        assert resp.get_json()['intervals'] == [50, 100, 250, 500]
        again = _post(app_client, f"/api/service/templates/{template['id']}/tasks", {'task_id': catalog['oil']['id']})
        assert again.status_code == 400


class TestScheduleAndRecords:
    def test_schedule(self, app_client, catalog, mower):
        equip_id = mower['equipment']['id']
        schedule = app_client.get(f'/api/service/equipment/{equip_id}/schedule').get_json()
        assert schedule['summary'] == {'not-due': 1, 'pending': 2, 'overdue': 2, 'completed': 0}
        assert schedule['intervals'] == [50, 100, 250, 500]

    def test_schedule_unknown_equipment(self, app_client):
        assert app_client.get('/api/service/equipment/999/schedule').status_code == 404

    def test_record_then_edit_with_admin_code(self, app_client, catalog, mower):
        equip_id = mower['equipment']['id']
        resp = _post(app_client, '/api/service/records', {
            'equipment_id': equip_id, 'task_id': catalog['oil']['id'], 'scheduled_interval': 50,
            'performed_by': 'Sam', 'actual_hours': 52,
        })
        assert resp.status_code == 201
        record_id = resp.get_json()['id']

        schedule = app_client.get(f'/api/service/equipment/{equip_id}/schedule').get_json()
        assert schedule['summary']['completed'] == 1

        # No admin code configured yet
        denied = _post(app_client, f'/api/service/records/{record_id}/authorize', {'code': '1234'}).get_json()
        assert denied == {'ok': False, 'reason': 'not_configured', 'message': 'Admin code not configured'}

        app_client.put('/api/service/settings', json={'master_admin_code': '1234'})
        wrong = _post(app_client, f'/api/service/records/{record_id}/authorize', {'code': '0000'}).get_json()
        assert wrong['reason'] == 'invalid_code'

        granted = _post(app_client, f'/api/service/records/{record_id}/authorize', {'code': '1234'}).get_json()
        assert granted['ok']

        edit = {'token': granted['token'], 'performed_by': 'Alex'}
        resp = app_client.put(f'/api/service/records/{record_id}', json=edit)
        assert resp.status_code == 200
        assert resp.get_json()['performed_by'] == 'Alex'

        # The token is single use
        assert app_client.put(f'/api/service/records/{record_id}', json=edit).status_code == 403

    def test_newer_authorization_invalidates_older_token(self, app_client, catalog, mower):
        record = _post(app_client, '/api/service/records', {
            'equipment_id': mower['equipment']['id'], 'task_id': catalog['oil']['id'],
            'scheduled_interval': 50, 'performed_by': 'Sam',
        }).get_json()
        app_client.put('/api/service/settings', json={'master_admin_code': '1234'})
        url = f"/api/service/records/{record['id']}"
        first = _post(app_client, f'{url}/authorize', {'code': '1234'}).get_json()
        second = _post(app_client, f'{url}/authorize', {'code': '1234'}).get_json()

        assert app_client.put(url, json={'token': first['token'], 'performed_by': 'Alex'}).status_code == 403
        assert app_client.put(url, json={'token': second['token'], 'performed_by': 'Alex'}).status_code == 200

    def test_edit_without_token_forbidden(self, app_client, catalog, mower):
        resp = app_client.put('/api/service/records/1', json={'performed_by': 'Alex'})
        assert resp.status_code == 403

    def test_record_for_unscheduled_cell_is_400(self, app_client, catalog, mower):
        base = {'equipment_id': mower['equipment']['id'], 'performed_by': 'Sam'}
        unknown_task = _post(app_client, '/api/service/records',
                             dict(base, task_id=9999, scheduled_interval=50))
        assert unknown_task.status_code == 400
        negative = _post(app_client, '/api/service/records',
                         dict(base, task_id=catalog['oil']['id'], scheduled_interval=-7))
        assert negative.status_code == 400

    def test_duplicate_record_rejected(self, app_client, catalog, mower):
        body = {
            'equipment_id': mower['equipment']['id'], 'task_id': catalog['oil']['id'],
            'scheduled_interval': 50, 'performed_by': 'Sam',
        }
        assert _post(app_client, '/api/service/records', body).status_code == 201
        assert _post(app_client, '/api/service/records', body).status_code == 400


class TestSettingsEndpoints:
    def test_defaults(self, app_client):
        settings = app_client.get('/api/service/settings').get_json()
        assert settings['pending_before_hours'] == 20
        assert settings['pending_after_hours'] == 15
        assert settings['admin_code_configured'] is False
        assert 'master_admin_code' not in settings

    def test_update_keeps_code_when_omitted(self, app_client):
        app_client.put('/api/service/settings', json={'master_admin_code': '1234'})
        resp = app_client.put('/api/service/settings', json={'pending_before_hours': 40})
        settings = resp.get_json()
        assert settings['pending_before_hours'] == 40
        assert settings['admin_code_configured'] is True

    def test_invalid_threshold(self, app_client):
        resp = app_client.put('/api/service/settings', json={'pending_after_hours': 'soon'})
        assert resp.status_code == 400

    def test_seed(self, app_client):
        counts = _post(app_client, '/api/service/seed', {}).get_json()
        assert counts['presets'] == 3
        assert _post(app_client, '/api/service/seed', {}).get_json()['presets'] == 0
