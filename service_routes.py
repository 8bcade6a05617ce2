"""
Service Master routes blueprint.

JSON API over the service master modules:
- Task categories, service tasks, interval presets
- Service templates and their task/interval assignments
- Equipment and its computed service schedule
- Service records and the admin-code gate for editing completed records
- Settings (pending window thresholds, admin code)
"""

import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from data_store import DataStore
from errors import AuthorizationError
from equipment_manager import (
    add_equipment, delete_equipment, get_equipment, get_equipment_by_id,
    load_equipment_schedule, update_equipment,
)
from record_authorization import GrantRegistry
from service_catalog import (
    UNCATEGORIZED, create_category, create_preset, create_task, delete_category,
    delete_preset, delete_task, list_categories, list_presets, list_tasks,
    parse_interval_input, update_category, update_preset, update_task, get_preset,
)
from service_records import create_record, list_records, update_record
from service_seed_data import seed_defaults
from service_settings import load_settings, save_settings
from template_composer import (
    TemplateDraft, add_task_to_template, commit_template, delete_template, get_template,
    list_template_tasks, list_templates, remove_task_from_template, tasks_not_in_template,
    toggle_assignment_interval, update_template,
)

logger = logging.getLogger(__name__)

service_bp = Blueprint('service_bp', __name__, url_prefix='/api/service')

_grants = GrantRegistry()


# ====================================================================
# Helpers
# ====================================================================

def _store():
    """The DataStore configured on the app, or a default one."""
    store = current_app.config.get('SERVICE_STORE')
    if store is None:
        store = DataStore()
        current_app.config['SERVICE_STORE'] = store
    return store


def _json():
    return request.get_json(force=True, silent=True) or {}


def _category_filter():
    """Parse ?category=<id>&category=uncategorized into a filter set."""
    selected = set()
    for value in request.args.getlist('category'):
        if value == UNCATEGORIZED:
            selected.add(value)
        elif value.isdigit():
            selected.add(int(value))
    return selected


def _api(action):
    """Map service errors onto JSON responses the same way for every route."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ValueError as e:
                return jsonify({'error': str(e)}), 400
            except AuthorizationError as e:
                return jsonify({'error': str(e)}), 403
            except Exception as e:
                logger.error(f"Error {action}: {e}")
                return jsonify({'error': str(e)}), 500
        return wrapper
    return decorator


def _not_found(what):
    return jsonify({'error': f'{what} not found'}), 404


# ====================================================================
# Categories
# ====================================================================

@service_bp.route('/categories', methods=['GET'])
@_api('listing categories')
def get_categories():
    return jsonify(list_categories(_store()))


@service_bp.route('/categories', methods=['POST'])
@_api('creating category')
def post_category():
    return jsonify(create_category(_store(), _json())), 201


@service_bp.route('/categories/<int:category_id>', methods=['PUT'])
@_api('updating category')
def put_category(category_id):
    if not update_category(_store(), category_id, _json()):
        return _not_found('Category')
    return jsonify({'success': True})


@service_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@_api('deleting category')
def remove_category(category_id):
    if not delete_category(_store(), category_id):
        return _not_found('Category')
    return jsonify({'success': True})


# ====================================================================
# Tasks
# ====================================================================

@service_bp.route('/tasks', methods=['GET'])
@_api('listing tasks')
def get_tasks():
    category = request.args.get('category', 'all')
    if category.isdigit():
        category = int(category)
    return jsonify(list_tasks(_store(), category=category))


@service_bp.route('/tasks', methods=['POST'])
@_api('creating task')
def post_task():
    return jsonify(create_task(_store(), _json())), 201


@service_bp.route('/tasks/<int:task_id>', methods=['PUT'])
@_api('updating task')
def put_task(task_id):
    if not update_task(_store(), task_id, _json()):
        return _not_found('Task')
    return jsonify({'success': True})


@service_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@_api('deleting task')
def remove_task(task_id):
    if not delete_task(_store(), task_id):
        return _not_found('Task')
    return jsonify({'success': True})


# ====================================================================
# Interval presets
# ====================================================================

@service_bp.route('/presets', methods=['GET'])
@_api('listing presets')
def get_presets():
    return jsonify(list_presets(_store()))


@service_bp.route('/presets', methods=['POST'])
@_api('creating preset')
def post_preset():
    return jsonify(create_preset(_store(), _json())), 201


@service_bp.route('/presets/parse', methods=['POST'])
@_api('parsing intervals')
def parse_preset_intervals():
    data = _json()
    return jsonify({'intervals': parse_interval_input(data.get('text'), data.get('existing') or [])})


@service_bp.route('/presets/<int:preset_id>', methods=['PUT'])
@_api('updating preset')
def put_preset(preset_id):
    if not update_preset(_store(), preset_id, _json()):
        return _not_found('Preset')
    return jsonify({'success': True})


@service_bp.route('/presets/<int:preset_id>', methods=['DELETE'])
@_api('deleting preset')
def remove_preset(preset_id):
    if not delete_preset(_store(), preset_id):
        return _not_found('Preset')
    return jsonify({'success': True})


# ====================================================================
# Templates
# ====================================================================

@service_bp.route('/templates', methods=['GET'])
@_api('listing templates')
def get_templates():
    return jsonify(list_templates(_store()))


@service_bp.route('/templates', methods=['POST'])
@_api('creating template')
def post_template():
    """Create a template in one request from a finished wizard.

    Body: {name, description, preset_id, tasks: [{task_id, intervals?}]}.
    Tasks without explicit intervals get the auto-apply default.
    """
    store = _store()
    data = _json()

    draft = TemplateDraft(tasks=list_tasks(store))
    draft.set_details(data.get('name'), data.get('description'))
    preset_id = data.get('preset_id')
    if preset_id:
        preset = get_preset(store, preset_id)
        if preset is None:
            raise ValueError(f"Interval preset {preset_id} does not exist")
        draft.choose_preset(preset)

    items = data.get('tasks') or []
    catalog_ids = {t['id'] for t in draft.tasks}
    task_ids = []
    for item in items:
        if not item.get('task_id'):
            raise ValueError("task_id is required")
        task_id = int(item['task_id'])
        if task_id not in catalog_ids:
            raise ValueError(f"Task {task_id} does not exist")
        task_ids.append(task_id)
        draft.selected_task_ids.add(task_id)
    while draft.step != 'assign':
        draft.next_step()

    ladder = set(draft.intervals)
    for task_id, item in zip(task_ids, items):
        if 'intervals' in item:
            chosen = sorted({int(i) for i in item['intervals'] or []} & ladder)
            draft.task_selections[task_id] = chosen

    template = commit_template(store, draft)
    return jsonify(get_template(store, template['id'])), 201


@service_bp.route('/templates/<int:template_id>', methods=['GET'])
@_api('getting template')
def get_template_route(template_id):
    template = get_template(_store(), template_id)
    if template is None:
        return _not_found('Template')
    return jsonify(template)


@service_bp.route('/templates/<int:template_id>', methods=['PUT'])
@_api('updating template')
def put_template(template_id):
    if not update_template(_store(), template_id, _json()):
        return _not_found('Template')
    return jsonify({'success': True})


@service_bp.route('/templates/<int:template_id>', methods=['DELETE'])
@_api('deleting template')
def remove_template(template_id):
    if not delete_template(_store(), template_id):
        return _not_found('Template')
    return jsonify({'success': True})


@service_bp.route('/templates/<int:template_id>/tasks', methods=['GET'])
@_api('listing template tasks')
def get_template_tasks(template_id):
    return jsonify(list_template_tasks(_store(), template_id, _category_filter()))


@service_bp.route('/templates/<int:template_id>/available-tasks', methods=['GET'])
@_api('listing available tasks')
def get_available_tasks(template_id):
    return jsonify(tasks_not_in_template(_store(), template_id, _category_filter()))


@service_bp.route('/templates/<int:template_id>/tasks', methods=['POST'])
@_api('adding task to template')
def post_template_task(template_id):
    data = _json()
    if not data.get('task_id'):
        raise ValueError("task_id is required")
    return jsonify(add_task_to_template(_store(), template_id, int(data['task_id']))), 201


@service_bp.route('/template-tasks/<int:assignment_id>', methods=['DELETE'])
@_api('removing template task')
def remove_template_task(assignment_id):
    if not remove_task_from_template(_store(), assignment_id):
        return _not_found('Template task')
    return jsonify({'success': True})


@service_bp.route('/template-tasks/<int:assignment_id>/toggle', methods=['POST'])
@_api('toggling interval')
def toggle_template_task_interval(assignment_id):
    data = _json()
    if data.get('interval') is None:
        raise ValueError("interval is required")
    assignment = toggle_assignment_interval(_store(), assignment_id, int(data['interval']))
    return jsonify({'assignment': assignment, 'removed': assignment is None})


# ====================================================================
# Equipment
# ====================================================================

@service_bp.route('/equipment', methods=['GET'])
@_api('listing equipment')
def get_equipment_list():
    return jsonify(get_equipment(_store()))


@service_bp.route('/equipment', methods=['POST'])
@_api('creating equipment')
def post_equipment():
    return jsonify(add_equipment(_store(), _json())), 201


@service_bp.route('/equipment/<int:equipment_id>', methods=['GET'])
@_api('getting equipment')
def get_equipment_route(equipment_id):
    equipment = get_equipment_by_id(_store(), equipment_id)
    if equipment is None:
        return _not_found('Equipment')
    return jsonify(equipment)


@service_bp.route('/equipment/<int:equipment_id>', methods=['PUT'])
@_api('updating equipment')
def put_equipment(equipment_id):
    if not update_equipment(_store(), equipment_id, _json()):
        return _not_found('Equipment')
    return jsonify({'success': True})


@service_bp.route('/equipment/<int:equipment_id>', methods=['DELETE'])
@_api('deleting equipment')
def remove_equipment(equipment_id):
    if not delete_equipment(_store(), equipment_id):
        return _not_found('Equipment')
    return jsonify({'success': True})


@service_bp.route('/equipment/<int:equipment_id>/schedule', methods=['GET'])
@_api('loading schedule')
def get_equipment_schedule(equipment_id):
    store = _store()
    schedule = load_equipment_schedule(store, equipment_id, load_settings(store))
    if schedule is None:
        return _not_found('Equipment')
    return jsonify(schedule)


@service_bp.route('/equipment/<int:equipment_id>/records', methods=['GET'])
@_api('listing service records')
def get_equipment_records(equipment_id):
    return jsonify(list_records(_store(), equipment_id))


# ====================================================================
# Service records
# ====================================================================

@service_bp.route('/records', methods=['POST'])
@_api('creating service record')
def post_record():
    store = _store()
    data = _json()
    for field in ('equipment_id', 'task_id', 'scheduled_interval'):
        if data.get(field) in (None, ''):
            raise ValueError(f"{field} is required")
    equipment = get_equipment_by_id(store, int(data['equipment_id']))
    if equipment is None:
        return _not_found('Equipment')
    record = create_record(store, equipment, int(data['task_id']), int(data['scheduled_interval']), data)
    return jsonify(record), 201


@service_bp.route('/records/<int:record_id>/authorize', methods=['POST'])
@_api('authorizing record edit')
def authorize_record_edit(record_id):
    """Check the admin code. Failures are reported inline, not as errors."""
    store = _store()
    result, grant = _grants.request_edit(record_id, _json().get('code', ''), load_settings(store))
    if not result.ok:
        return jsonify({'ok': False, 'reason': result.reason, 'message': result.message})
    return jsonify({'ok': True, 'token': grant.token})


@service_bp.route('/records/<int:record_id>', methods=['PUT'])
@_api('updating service record')
def put_record(record_id):
    data = _json()
    grant = _grants.take(data.get('token'))
    return jsonify(update_record(_store(), record_id, data, grant))


# ====================================================================
# Settings
# ====================================================================

@service_bp.route('/settings', methods=['GET'])
@_api('loading settings')
def get_settings():
    return jsonify(load_settings(_store()).to_dict())


@service_bp.route('/settings', methods=['PUT'])
@_api('saving settings')
def put_settings():
    store = _store()
    data = _json()
    current = load_settings(store)
    saved = save_settings(
        store,
        data.get('pending_before_hours', current.pending_before_hours),
        data.get('pending_after_hours', current.pending_after_hours),
        data['master_admin_code'] if 'master_admin_code' in data else current.master_admin_code,
    )
    return jsonify(saved.to_dict())


@service_bp.route('/seed', methods=['POST'])
@_api('seeding catalog')
def post_seed():
    return jsonify(seed_defaults(_store()))
