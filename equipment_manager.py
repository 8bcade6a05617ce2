"""
Equipment module for the service master.
Handles the equipment inventory (name, serial number, operating hours,
assigned template) and assembles each unit's service schedule with live
statuses for display and action-gating.
"""

import logging

from errors import StoreError, ValidationError
from request_tracker import RequestGenerations
from service_records import list_records
from status_engine import build_status_grid, compute_task_statuses, summarize_statuses
from template_composer import get_template, list_template_tasks

logger = logging.getLogger(__name__)

EQUIPMENT_TABLE = 'equipment'


# ---------------------------------------------------------------------------
# Equipment CRUD
# ---------------------------------------------------------------------------

def _hours(value):
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Current hours must be a number")
    if hours < 0:
        raise ValidationError("Current hours cannot be negative")
    return hours


def _equipment_fields(store, data, partial=False):
    fields = {}
    for field, label in (('name', 'Equipment name'), ('serial_number', 'Serial number')):
        if not partial or field in data:
            value = (data.get(field) or '').strip()
            if not value:
                raise ValidationError(f"{label} is required")
            fields[field] = value
    if 'current_hours' in data or not partial:
        fields['current_hours'] = _hours(data.get('current_hours') or 0)
    if 'template_id' in data or not partial:
        template_id = data.get('template_id') or None
        if template_id is not None and get_template(store, template_id) is None:
            raise ValidationError(f"Template {template_id} does not exist")
        fields['template_id'] = template_id
    return fields


def add_equipment(store, data):
    """Add a new piece of equipment.

    Args:
        store: DataStore.
        data: dict with name, serial_number, current_hours, template_id.

    Returns:
        dict: the stored equipment row.
    """
    row = store.insert(EQUIPMENT_TABLE, _equipment_fields(store, data))[0]
    logger.info(f"Equipment added: id={row['id']} name={row['name']} serial={row['serial_number']}")
    return row


def update_equipment(store, equip_id, data):
    """Update equipment details. Only updates fields present in data.

    Returns:
        bool: True if the row was updated.
    """
    updated = store.update(EQUIPMENT_TABLE, _equipment_fields(store, data, partial=True), {'id': equip_id}) > 0
    if updated:
        logger.info(f"Equipment updated: id={equip_id}")
    return updated


def delete_equipment(store, equip_id):
    """Delete equipment along with its service records."""
    store.delete('service_records', {'equipment_id': equip_id})
    deleted = store.delete(EQUIPMENT_TABLE, {'id': equip_id}) > 0
    if deleted:
        logger.info(f"Equipment deleted: id={equip_id}")
    return deleted


def get_equipment(store):
    """All equipment ordered by name."""
    return store.select(EQUIPMENT_TABLE, order=[('name', 'asc')])


def get_equipment_by_id(store, equip_id):
    return store.select_one(EQUIPMENT_TABLE, {'id': equip_id})


# ---------------------------------------------------------------------------
# Service schedule
# ---------------------------------------------------------------------------

def load_equipment_schedule(store, equip_id, settings):
    """Fetch everything the schedule screen needs and compute statuses.

    Args:
        store: DataStore.
        equip_id: Equipment ID.
        settings: ServiceSettings value (thresholds).

    Returns:
        dict with 'equipment', 'template', 'intervals', 'statuses', 'grid'
        and 'summary', or None if the equipment does not exist.
    """
    equipment = get_equipment_by_id(store, equip_id)
    if equipment is None:
        return None

    template = get_template(store, equipment['template_id'])
    if template is None:
        template_tasks, records, intervals = [], [], []
    else:
        template_tasks = list_template_tasks(store, template['id'])
        records = list_records(store, equip_id)
        intervals = template['intervals']

    statuses = compute_task_statuses(template_tasks, equipment['current_hours'], records, settings)

    return {
        'equipment': equipment,
        'template': template,
        'intervals': intervals,
        'statuses': statuses,
        'grid': build_status_grid(statuses, intervals),
        'summary': summarize_statuses(statuses),
    }


class EquipmentScheduleView:
    """Schedule state for the currently selected equipment.

    Every selection or refresh starts a new generation; a load that finishes
    after a newer one has started is thrown away instead of overwriting the
    newer selection. Store failures are logged and leave the last good
    schedule in place.
    """

    CHANNEL = 'schedule'

    def __init__(self, store, settings, generations=None):
        self.store = store
        self.settings = settings
        self.generations = generations or RequestGenerations()
        self.selected_id = None
        self.schedule = None

    def begin_load(self, equip_id):
        """Mark ``equip_id`` as the selection and return the request token."""
        self.selected_id = equip_id
        return self.generations.begin(self.CHANNEL)

    def fetch(self, equip_id):
        return load_equipment_schedule(self.store, equip_id, self.settings)

    def apply(self, token, schedule):
        """Apply a finished load. Returns False when the load was superseded."""
        if not self.generations.accept(self.CHANNEL, token):
            return False
        self.schedule = schedule
        return True

    def select(self, equip_id):
        token = self.begin_load(equip_id)
        try:
            schedule = self.fetch(equip_id)
        except StoreError as e:
            logger.error(f"Error loading schedule for equipment {equip_id}: {e}")
            return self.schedule
        self.apply(token, schedule)
        return self.schedule

    def refresh(self):
        if self.selected_id is None:
            return None
        return self.select(self.selected_id)

    def update_settings(self, settings):
        self.settings = settings
        return self.refresh()

    def cell(self, task_id, interval):
        if not self.schedule:
            return None
        for status in self.schedule['statuses']:
            if status['task_id'] == task_id and status['interval'] == interval:
                return status
        return None
