"""
Service status engine.

Classifies every (task, interval) cell of an equipment's template schedule as
not-due, pending, overdue or completed. Everything here is a pure function of
its arguments: the caller passes the schedule, the equipment hours, the
equipment's service records and the settings value, and gets fresh statuses
back. Nothing is cached between calls.
"""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STATUS_NOT_DUE = 'not-due'
STATUS_PENDING = 'pending'
STATUS_OVERDUE = 'overdue'
STATUS_COMPLETED = 'completed'

VALID_SERVICE_STATUSES = [STATUS_NOT_DUE, STATUS_PENDING, STATUS_OVERDUE, STATUS_COMPLETED]


# ---------------------------------------------------------------------------
# Single cell
# ---------------------------------------------------------------------------

def hours_until_due(interval, equipment_hours):
    """Hours remaining until ``interval`` is reached. Negative means overdue."""
    return interval - equipment_hours


def classify_hours(delta, pending_before_hours, pending_after_hours):
    """Map hours-until-due onto a status for a cell with no completion record.

    ``delta == pending_before_hours`` is still not-due and
    ``delta == -pending_after_hours`` is still pending.
    """
    if delta > pending_before_hours:
        return STATUS_NOT_DUE
    if delta >= -pending_after_hours:
        return STATUS_PENDING
    return STATUS_OVERDUE


def find_service_record(records, task_id, interval) -> Optional[Dict]:
    """Return the first record for (task_id, interval), or None.

    The store enforces one record per (equipment, task, interval). If a
    duplicate slips through, the first one in ``records`` order wins; the
    record store lists records by actual_hours descending, then id descending.
    """
    for record in records:
        if record['task_id'] == task_id and record['scheduled_interval'] == interval:
            return record
    return None


def compute_status(cell, equipment_hours, records, settings) -> Dict:
    """Compute the status of one schedule cell.

    Args:
        cell: dict with 'task_id', 'interval' and optionally 'task' (the task row).
        equipment_hours: The equipment's current operating hours.
        records: All service records for this equipment.
        settings: ServiceSettings value supplying the pending window.

    Returns:
        dict with 'task', 'task_id', 'interval', 'status', 'last_service'
        and 'hours_until_due' (None when completed).
    """
    task_id = cell['task_id']
    interval = cell['interval']

    last_service = find_service_record(records, task_id, interval)
    if last_service is not None:
        status = STATUS_COMPLETED
        delta = None
    else:
        delta = hours_until_due(interval, equipment_hours)
        status = classify_hours(delta, settings.pending_before_hours, settings.pending_after_hours)

    return {
        'task': cell.get('task'),
        'task_id': task_id,
        'interval': interval,
        'status': status,
        'last_service': last_service,
        'hours_until_due': delta,
    }


# ---------------------------------------------------------------------------
# Whole schedule
# ---------------------------------------------------------------------------

def schedule_cells(template_tasks) -> List[Dict]:
    """Expand template task assignments into (task, interval) cells.

    Assignments whose task row is missing produce no cells, and neither do
    assignments with an empty interval set.
    """
    cells = []
    for assignment in template_tasks:
        task = assignment.get('task')
        if not task:
            continue
        for interval in assignment.get('intervals') or []:
            cells.append({'task': task, 'task_id': assignment['task_id'], 'interval': interval})
    return cells


def compute_task_statuses(template_tasks, equipment_hours, records, settings) -> List[Dict]:
    """Compute a status for every cell of the equipment's template schedule."""
    return [
        compute_status(cell, equipment_hours, records, settings)
        for cell in schedule_cells(template_tasks)
    ]


def build_status_grid(statuses, intervals):
    """Arrange statuses as rows of tasks (sorted by name) against intervals.

    Args:
        statuses: Output of compute_task_statuses.
        intervals: The template preset's interval ladder (column order).

    Returns:
        list[dict]: one row per task, {'task': ..., 'cells': [status dict or None, ...]}.
    """
    by_cell = {(s['task_id'], s['interval']): s for s in statuses}
    tasks = {}
    for s in statuses:
        tasks[s['task_id']] = s['task']

    ordered = sorted(tasks.items(), key=lambda item: ((item[1] or {}).get('name') or '').lower())
    return [
        {
            'task': task,
            'cells': [by_cell.get((task_id, interval)) for interval in intervals],
        }
        for task_id, task in ordered
    ]


def summarize_statuses(statuses):
    """Count cells per status. Every status key is present."""
    summary = {status: 0 for status in VALID_SERVICE_STATUSES}
    for s in statuses:
        summary[s['status']] += 1
    return summary


def pending_window(interval, settings):
    """Hour range (start, end) in which ``interval`` shows as pending."""
    return (interval - settings.pending_before_hours, interval + settings.pending_after_hours)
