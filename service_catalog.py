"""
Service catalog: task categories, service tasks and interval presets.

Categories are purely organizational. Tasks carry an estimated duration and
the auto-apply flag used by the template composer. Interval presets are the
named hour ladders (e.g. 50/100/250/500) that templates are built on.
"""

import logging
import re

from errors import ValidationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY_COLOR = '#64748b'

UNCATEGORIZED = 'uncategorized'
ALL_CATEGORIES = 'all'

_COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')


def _required_name(data, label):
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError(f"{label} name is required")
    return name


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def _category_fields(data, partial=False):
    fields = {}
    if not partial or 'name' in data:
        fields['name'] = _required_name(data, 'Category')
    if 'description' in data or not partial:
        fields['description'] = (data.get('description') or '').strip()
    if 'color' in data or not partial:
        color = data.get('color') or DEFAULT_CATEGORY_COLOR
        if not _COLOR_RE.match(color):
            raise ValidationError(f"Invalid category color: {color}")
        fields['color'] = color
    return fields


def create_category(store, data):
    """Create a task category. Returns the stored row."""
    row = store.insert('task_categories', _category_fields(data))[0]
    logger.info(f"Category created: id={row['id']} name={row['name']}")
    return row


def update_category(store, category_id, data):
    fields = _category_fields(data, partial=True)
    updated = store.update('task_categories', fields, {'id': category_id}) > 0
    if updated:
        logger.info(f"Category updated: id={category_id}")
    return updated


def delete_category(store, category_id):
    """Delete a category. Tasks in it become uncategorized, never deleted."""
    store.update('service_tasks', {'category_id': None}, {'category_id': category_id})
    deleted = store.delete('task_categories', {'id': category_id}) > 0
    if deleted:
        logger.info(f"Category deleted: id={category_id}")
    return deleted


def list_categories(store):
    return store.select('task_categories', order=[('name', 'asc')])


def category_filter_matches(category_id, selected):
    """True if a task with ``category_id`` passes the category filter.

    ``selected`` is a collection of category ids, optionally containing
    UNCATEGORIZED. An empty selection passes every task.
    """
    if not selected:
        return True
    if category_id is None:
        return UNCATEGORIZED in selected
    return category_id in selected


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def _task_fields(data, partial=False):
    fields = {}
    if not partial or 'name' in data:
        fields['name'] = _required_name(data, 'Task')
    if 'description' in data or not partial:
        fields['description'] = (data.get('description') or '').strip()
    if 'estimated_duration' in data or not partial:
        try:
            duration = int(data.get('estimated_duration') or 0)
        except (TypeError, ValueError):
            raise ValidationError("Estimated duration must be a whole number of minutes")
        if duration < 0:
            raise ValidationError("Estimated duration cannot be negative")
        fields['estimated_duration'] = duration
    if 'category_id' in data or not partial:
        fields['category_id'] = data.get('category_id') or None
    if 'auto_apply' in data or not partial:
        fields['auto_apply'] = bool(data.get('auto_apply', False))
    return fields


def create_task(store, data):
    """Create a service task. Returns the stored row."""
    row = store.insert('service_tasks', _task_fields(data))[0]
    logger.info(f"Task created: id={row['id']} name={row['name']} auto_apply={row['auto_apply']}")
    return row


def update_task(store, task_id, data):
    updated = store.update('service_tasks', _task_fields(data, partial=True), {'id': task_id}) > 0
    if updated:
        logger.info(f"Task updated: id={task_id}")
    return updated


def delete_task(store, task_id):
    """Delete a task and its template assignments.

    A task with service history cannot be deleted; the records would
    otherwise point at nothing.
    """
    history = store.select('service_records', {'task_id': task_id})
    if history:
        logger.warning(f"Task delete refused: id={task_id} has {len(history)} service record(s)")
        raise ValidationError("Task has recorded services and cannot be deleted")

    store.delete('template_tasks', {'task_id': task_id})
    deleted = store.delete('service_tasks', {'id': task_id}) > 0
    if deleted:
        logger.info(f"Task deleted: id={task_id}")
    return deleted


def get_task(store, task_id):
    return store.select_one('service_tasks', {'id': task_id})


def list_tasks(store, category=ALL_CATEGORIES):
    """List tasks ordered by category name (uncategorized last), then name.

    Args:
        store: DataStore.
        category: 'all', 'uncategorized' or a category id.

    Returns:
        list[dict]: task rows with a 'category' key (the category row or None).
    """
    categories = {c['id']: c for c in list_categories(store)}
    tasks = store.select('service_tasks')

    if category == UNCATEGORIZED:
        tasks = [t for t in tasks if not t['category_id']]
    elif category not in (None, ALL_CATEGORIES):
        tasks = [t for t in tasks if t['category_id'] == category]

    for task in tasks:
        task['category'] = categories.get(task['category_id'])

    def _sort_key(task):
        cat = task['category']
        # Uncategorized sorts after every named category
        return (cat is None, (cat['name'] if cat else '').lower(), task['name'].lower())

    return sorted(tasks, key=_sort_key)


# ---------------------------------------------------------------------------
# Interval presets
# ---------------------------------------------------------------------------

def parse_interval_input(text, existing=()):
    """Parse comma-separated hour values and merge them into ``existing``.

    Blank, non-numeric and non-positive entries are dropped; the result is
    deduplicated and sorted ascending.
    """
    values = set(existing)
    for part in (text or '').split(','):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            continue
        if value > 0:
            values.add(value)
    return sorted(values)


def normalize_intervals(intervals):
    """Validate an interval ladder: strictly positive, distinct, ascending."""
    ladder = []
    for value in intervals or []:
        try:
            hours = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid interval: {value!r}")
        if hours <= 0:
            raise ValidationError("Intervals must be greater than zero")
        ladder.append(hours)
    return sorted(set(ladder))


def _preset_fields(data, partial=False):
    fields = {}
    if not partial or 'name' in data:
        fields['name'] = _required_name(data, 'Preset')
    if 'description' in data or not partial:
        fields['description'] = (data.get('description') or '').strip()
    if 'intervals' in data or not partial:
        intervals = data.get('intervals')
        if isinstance(intervals, str):
            intervals = parse_interval_input(intervals)
        ladder = normalize_intervals(intervals)
        if not ladder:
            raise ValidationError("At least one interval is required")
        fields['intervals'] = ladder
    return fields


def create_preset(store, data):
    """Create an interval preset. Returns the stored row."""
    row = store.insert('interval_presets', _preset_fields(data))[0]
    logger.info(f"Interval preset created: id={row['id']} intervals={row['intervals']}")
    return row


def prune_template_tasks(store, template_ids, ladder):
    """Drop intervals outside ``ladder`` from the templates' assignments.

    Assignments left with no intervals are deleted.

    Returns:
        int: number of assignments changed or removed.
    """
    if not template_ids:
        return 0
    allowed = set(ladder)
    changed = 0
    for assignment in store.select('template_tasks', {'template_id': list(template_ids)}):
        kept = [i for i in assignment['intervals'] if i in allowed]
        if kept == assignment['intervals']:
            continue
        if kept:
            store.update('template_tasks', {'intervals': kept}, {'id': assignment['id']})
        else:
            store.delete('template_tasks', {'id': assignment['id']})
        changed += 1
    if changed:
        logger.info(f"Pruned {changed} template assignment(s) to ladder {sorted(allowed)}")
    return changed


def update_preset(store, preset_id, data):
    """Edit a preset. Assignments of templates on it are pruned to the new ladder."""
    fields = _preset_fields(data, partial=True)
    updated = store.update('interval_presets', fields, {'id': preset_id}) > 0
    if updated:
        logger.info(f"Interval preset updated: id={preset_id}")
        if 'intervals' in fields:
            templates = store.select('service_templates', {'preset_id': preset_id})
            prune_template_tasks(store, [t['id'] for t in templates], fields['intervals'])
    return updated


def delete_preset(store, preset_id):
    """Delete a preset that no template is built on."""
    in_use = store.select('service_templates', {'preset_id': preset_id})
    if in_use:
        logger.warning(f"Preset delete refused: id={preset_id} used by {len(in_use)} template(s)")
        raise ValidationError("Interval preset is used by a template and cannot be deleted")
    deleted = store.delete('interval_presets', {'id': preset_id}) > 0
    if deleted:
        logger.info(f"Interval preset deleted: id={preset_id}")
    return deleted


def get_preset(store, preset_id):
    if preset_id is None:
        return None
    return store.select_one('interval_presets', {'id': preset_id})


def list_presets(store):
    return store.select('interval_presets', order=[('name', 'asc')])
