"""
Service record store.

One record per (equipment, task, scheduled interval). Recording a service on a
cell that is not yet completed needs no authorization; changing a record that
already exists needs a one-shot EditGrant from the authorization gate.
"""

import logging
from datetime import datetime

from errors import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

RECORDS_TABLE = 'service_records'

EDITABLE_FIELDS = ['performed_by', 'service_date', 'actual_hours', 'notes']


def _clean_form(form, default_hours=None):
    performed_by = (form.get('performed_by') or '').strip()
    if not performed_by:
        raise ValidationError("Performed by is required")

    service_date = form.get('service_date') or datetime.now().strftime('%Y-%m-%d')
    try:
        datetime.strptime(service_date, '%Y-%m-%d')
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid service date: {service_date!r} (expected YYYY-MM-DD)")

    actual_hours = form.get('actual_hours')
    if actual_hours in (None, ''):
        actual_hours = default_hours if default_hours is not None else 0
    try:
        actual_hours = float(actual_hours)
    except (TypeError, ValueError):
        raise ValidationError("Actual hours must be a number")
    if actual_hours < 0:
        raise ValidationError("Actual hours cannot be negative")

    return {
        'performed_by': performed_by,
        'service_date': service_date,
        'actual_hours': actual_hours,
        'notes': (form.get('notes') or '').strip(),
    }


def list_records(store, equipment_id):
    """All records for one equipment, highest actual_hours first."""
    return store.select(
        RECORDS_TABLE,
        {'equipment_id': equipment_id},
        order=[('actual_hours', 'desc'), ('id', 'desc')],
    )


def get_record(store, record_id):
    return store.select_one(RECORDS_TABLE, {'id': record_id})


def find_record(store, equipment_id, task_id, scheduled_interval):
    return store.select_one(RECORDS_TABLE, {
        'equipment_id': equipment_id,
        'task_id': task_id,
        'scheduled_interval': scheduled_interval,
    })


def _check_scheduled(store, equipment, task_id, scheduled_interval):
    """The (task, interval) cell must be on the equipment's template schedule."""
    template_id = equipment.get('template_id')
    if template_id is None:
        raise ValidationError("Equipment has no service template")
    assignment = store.select_one('template_tasks', {'template_id': template_id, 'task_id': task_id})
    if assignment is None:
        raise ValidationError(f"Task {task_id} is not part of this equipment's template")
    if scheduled_interval not in assignment['intervals']:
        raise ValidationError(f"{scheduled_interval}h is not a scheduled interval for task {task_id}")


def create_record(store, equipment, task_id, scheduled_interval, form):
    """Record a completed service for a cell that has no record yet.

    Args:
        store: DataStore.
        equipment: equipment row (id, current_hours, template_id).
        task_id: Task performed.
        scheduled_interval: The scheduled interval the service satisfies.
        form: dict with performed_by, service_date, actual_hours, notes.
              actual_hours defaults to the equipment's current hours and
              service_date to today.

    Returns:
        dict: the stored record.
    """
    _check_scheduled(store, equipment, task_id, scheduled_interval)
    if find_record(store, equipment['id'], task_id, scheduled_interval):
        raise ValidationError("This service is already recorded; editing it requires the admin code")

    values = _clean_form(form, default_hours=equipment.get('current_hours'))
    values.update({
        'equipment_id': equipment['id'],
        'task_id': task_id,
        'template_id': equipment.get('template_id'),
        'scheduled_interval': scheduled_interval,
    })
    record = store.insert(RECORDS_TABLE, values)[0]
    logger.info(
        f"Service recorded: id={record['id']} equipment={equipment['id']} "
        f"task={task_id} interval={scheduled_interval}h"
    )
    return record


def update_record(store, record_id, form, grant):
    """Edit a completed record. ``grant`` must be an unused EditGrant for it.

    The grant is consumed before the write, so a failed write still needs
    a fresh authorization.
    """
    if grant is None:
        raise AuthorizationError("Admin authorization required to edit a completed record")
    grant.consume(record_id)

    record = get_record(store, record_id)
    if record is None:
        raise ValidationError(f"Service record {record_id} does not exist")

    values = _clean_form(form, default_hours=record['actual_hours'])
    store.update(RECORDS_TABLE, values, {'id': record_id})
    record.update(values)
    logger.info(f"Service record updated: id={record_id}")
    return record
