"""
Template composer: service templates and their task/interval assignments.

A template is the maintenance plan for one equipment class. It references one
interval preset, and each assigned task carries the subset of that preset's
ladder at which the task is performed. Assignments are kept sorted and an
assignment whose interval set becomes empty is deleted outright.
"""

import logging

from errors import StoreError, ValidationError
from service_catalog import (
    category_filter_matches, get_preset, get_task, list_tasks, prune_template_tasks,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interval sets
# ---------------------------------------------------------------------------

def toggle_interval(intervals, interval):
    """Remove ``interval`` if present, otherwise add it. Result is sorted ascending."""
    if interval in intervals:
        return [i for i in intervals if i != interval]
    return sorted(list(intervals) + [interval])


def initial_intervals(task, ladder):
    """Intervals a task starts with when added to a template on ``ladder``."""
    return list(ladder) if task.get('auto_apply') else []


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _template_fields(store, data, partial=False):
    fields = {}
    if not partial or 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("Template name is required")
        fields['name'] = name
    if 'description' in data or not partial:
        fields['description'] = (data.get('description') or '').strip()
    if 'preset_id' in data or not partial:
        preset_id = data.get('preset_id') or None
        if preset_id is not None and get_preset(store, preset_id) is None:
            raise ValidationError(f"Interval preset {preset_id} does not exist")
        fields['preset_id'] = preset_id
    return fields


def _with_preset(store, template):
    preset = get_preset(store, template.get('preset_id'))
    template['preset'] = preset
    template['intervals'] = list(preset['intervals']) if preset else []
    return template


def create_template(store, data):
    """Create an empty template. Returns the stored row."""
    row = store.insert('service_templates', _template_fields(store, data))[0]
    logger.info(f"Template created: id={row['id']} name={row['name']} preset={row['preset_id']}")
    return _with_preset(store, row)


def update_template(store, template_id, data):
    """Edit a template. Changing the preset prunes assignments to the new ladder."""
    fields = _template_fields(store, data, partial=True)
    updated = store.update('service_templates', fields, {'id': template_id}) > 0
    if updated:
        logger.info(f"Template updated: id={template_id}")
        if 'preset_id' in fields:
            preset = get_preset(store, fields['preset_id'])
            prune_template_tasks(store, [template_id], preset['intervals'] if preset else [])
    return updated


def delete_template(store, template_id):
    """Delete a template and its assignments. Equipment on it becomes unassigned."""
    store.update('equipment', {'template_id': None}, {'template_id': template_id})
    store.delete('template_tasks', {'template_id': template_id})
    deleted = store.delete('service_templates', {'id': template_id}) > 0
    if deleted:
        logger.info(f"Template deleted: id={template_id}")
    return deleted


def get_template(store, template_id):
    if template_id is None:
        return None
    row = store.select_one('service_templates', {'id': template_id})
    return _with_preset(store, row) if row else None


def list_templates(store):
    rows = store.select('service_templates', order=[('name', 'asc')])
    return [_with_preset(store, row) for row in rows]


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------

def list_template_tasks(store, template_id, category_ids=None):
    """Assignments of a template, each with its 'task' row, sorted by task name.

    Args:
        store: DataStore.
        template_id: Template ID.
        category_ids: Optional category filter (ids and/or 'uncategorized').

    Returns:
        list[dict]: assignment rows. 'task' is None if the task row is gone.
    """
    assignments = store.select('template_tasks', {'template_id': template_id})
    if not assignments:
        return []
    tasks = {t['id']: t for t in store.select('service_tasks', {'id': [a['task_id'] for a in assignments]})}

    result = []
    for assignment in assignments:
        task = tasks.get(assignment['task_id'])
        assignment['task'] = task
        if category_ids and not category_filter_matches(task['category_id'] if task else None, category_ids):
            continue
        result.append(assignment)

    return sorted(result, key=lambda a: ((a['task'] or {}).get('name') or '').lower())


def tasks_not_in_template(store, template_id, category_ids=None):
    """Catalog tasks not yet assigned to the template, optionally category-filtered."""
    assigned = {a['task_id'] for a in store.select('template_tasks', {'template_id': template_id})}
    return [
        t for t in list_tasks(store)
        if t['id'] not in assigned and category_filter_matches(t['category_id'], category_ids)
    ]


def add_task_to_template(store, template_id, task_id):
    """Assign a task to a template.

    Auto-apply tasks start scheduled at every interval of the template's
    preset; other tasks start with no intervals.

    Returns:
        dict: the new assignment row.
    """
    template = get_template(store, template_id)
    if template is None:
        raise ValidationError(f"Template {template_id} does not exist")
    task = get_task(store, task_id)
    if task is None:
        raise ValidationError(f"Task {task_id} does not exist")
    if store.select_one('template_tasks', {'template_id': template_id, 'task_id': task_id}):
        raise ValidationError("Task is already part of this template")

    row = store.insert('template_tasks', {
        'template_id': template_id,
        'task_id': task_id,
        'intervals': initial_intervals(task, template['intervals']),
    })[0]
    logger.info(f"Task {task_id} added to template {template_id} intervals={row['intervals']}")
    return row


def remove_task_from_template(store, assignment_id):
    removed = store.delete('template_tasks', {'id': assignment_id}) > 0
    if removed:
        logger.info(f"Template assignment removed: id={assignment_id}")
    return removed


def toggle_assignment_interval(store, assignment_id, interval):
    """Toggle one interval on an assignment.

    Returns:
        dict or None: the updated assignment, or None when the toggle emptied
        the interval set and the assignment was deleted.
    """
    assignment = store.select_one('template_tasks', {'id': assignment_id})
    if assignment is None:
        raise ValidationError(f"Template assignment {assignment_id} does not exist")

    template = get_template(store, assignment['template_id'])
    ladder = template['intervals'] if template else []
    if interval not in ladder and interval not in assignment['intervals']:
        raise ValidationError(f"{interval}h is not an interval of this template's preset")

    new_intervals = toggle_interval(assignment['intervals'], interval)
    if not new_intervals:
        store.delete('template_tasks', {'id': assignment_id})
        logger.info(f"Template assignment {assignment_id} removed: last interval toggled off")
        return None

    store.update('template_tasks', {'intervals': new_intervals}, {'id': assignment_id})
    assignment['intervals'] = new_intervals
    logger.debug(f"Template assignment {assignment_id} intervals={new_intervals}")
    return assignment


# ---------------------------------------------------------------------------
# Creation wizard
# ---------------------------------------------------------------------------

WIZARD_STEPS = ['name', 'interval', 'tasks', 'assign']


class TemplateDraft:
    """In-progress template built over the four wizard steps.

    name -> interval (pick a preset) -> tasks (pick tasks, filtered by
    category) -> assign (per task intervals). Nothing is written until
    commit_template().
    """

    def __init__(self, tasks=None):
        self.step = WIZARD_STEPS[0]
        self.name = ''
        self.description = ''
        self.preset = None
        self.tasks = list(tasks or [])
        self.category_ids = set()
        self.selected_task_ids = set()
        self.task_selections = {}

    @property
    def intervals(self):
        return list(self.preset['intervals']) if self.preset else []

    def set_details(self, name, description=''):
        self.name = (name or '').strip()
        self.description = (description or '').strip()

    def choose_preset(self, preset):
        self.preset = preset

    # -- step navigation --

    def next_step(self):
        if self.step == 'name' and not self.name:
            raise ValidationError("Template name is required")
        index = WIZARD_STEPS.index(self.step)
        if index == len(WIZARD_STEPS) - 1:
            return self.step
        self.step = WIZARD_STEPS[index + 1]
        if self.step == 'assign':
            self._prepopulate()
        return self.step

    def previous_step(self):
        index = WIZARD_STEPS.index(self.step)
        if index > 0:
            self.step = WIZARD_STEPS[index - 1]
        return self.step

    def _prepopulate(self):
        ladder = self.intervals
        self.task_selections = {
            task['id']: initial_intervals(task, ladder)
            for task in self.tasks if task['id'] in self.selected_task_ids
        }

    # -- task selection --

    def _tasks_in(self, category_id):
        if category_id == 'uncategorized':
            return [t for t in self.tasks if not t.get('category_id')]
        return [t for t in self.tasks if t.get('category_id') == category_id]

    def toggle_category(self, category_id):
        """Toggle a category filter chip; its tasks are selected or deselected with it."""
        members = {t['id'] for t in self._tasks_in(category_id)}
        if category_id in self.category_ids:
            self.category_ids.discard(category_id)
            self.selected_task_ids -= members
        else:
            self.category_ids.add(category_id)
            self.selected_task_ids |= members

    def clear_categories(self):
        self.category_ids = set()

    def filtered_tasks(self):
        return [t for t in self.tasks if category_filter_matches(t.get('category_id'), self.category_ids)]

    def toggle_task(self, task_id):
        if task_id in self.selected_task_ids:
            self.selected_task_ids.discard(task_id)
        else:
            self.selected_task_ids.add(task_id)

    def select_all_filtered(self, selected=True):
        ids = {t['id'] for t in self.filtered_tasks()}
        if selected:
            self.selected_task_ids |= ids
        else:
            self.selected_task_ids -= ids

    # -- interval assignment --

    def toggle_interval(self, task_id, interval):
        """Toggle an interval for a task in the draft. Empty sets drop the task."""
        if interval not in self.intervals:
            raise ValidationError(f"{interval}h is not an interval of the chosen preset")
        new_intervals = toggle_interval(self.task_selections.get(task_id, []), interval)
        if new_intervals:
            self.task_selections[task_id] = new_intervals
        else:
            self.task_selections.pop(task_id, None)

    def assignments(self):
        """(task_id, intervals) pairs that will be written on commit.

        Intervals are cut down to the current preset's ladder, so a preset
        changed after the assign step cannot leave foreign intervals behind.
        """
        ladder = set(self.intervals)
        pairs = []
        for task_id, intervals in self.task_selections.items():
            kept = sorted(i for i in intervals if i in ladder)
            if task_id in self.selected_task_ids and kept:
                pairs.append((task_id, kept))
        return pairs


def commit_template(store, draft):
    """Write a drafted template and its assignments.

    Only intervals of the draft's preset are written (see
    TemplateDraft.assignments). The template row is inserted first, then all
    assignments in one insert.
    If the assignment insert fails the template row is deleted again so a
    half-built template is never left behind, and StoreError is raised.

    Returns:
        dict: the created template.
    """
    if not draft.name:
        raise ValidationError("Template name is required")

    template = create_template(store, {
        'name': draft.name,
        'description': draft.description,
        'preset_id': draft.preset['id'] if draft.preset else None,
    })

    rows = [
        {'template_id': template['id'], 'task_id': task_id, 'intervals': intervals}
        for task_id, intervals in draft.assignments()
    ]
    if rows:
        try:
            store.insert('template_tasks', rows)
        except StoreError:
            logger.error(f"Assignments for template {template['id']} failed; removing template")
            store.delete('service_templates', {'id': template['id']})
            raise

    logger.info(f"Template committed: id={template['id']} tasks={len(rows)}")
    return template
