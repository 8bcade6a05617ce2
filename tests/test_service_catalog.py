"""Tests for categories, service tasks and interval presets."""

import pytest

from errors import ValidationError
from service_catalog import (
    DEFAULT_CATEGORY_COLOR, UNCATEGORIZED, category_filter_matches, create_category,
    create_preset, create_task, delete_category, delete_preset, delete_task, get_preset,
    get_task, list_categories, list_presets, list_tasks, normalize_intervals,
    parse_interval_input, update_category, update_preset, update_task,
)
from template_composer import add_task_to_template, create_template, list_template_tasks


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class TestCategories:
    def test_create_defaults_color(self, store):
        row = create_category(store, {'name': 'Hydraulics'})
        assert row['color'] == DEFAULT_CATEGORY_COLOR
        assert row['description'] == ''

    def test_name_required(self, store):
        with pytest.raises(ValidationError):
            create_category(store, {'name': '   '})

    def test_bad_color_rejected(self, store):
        with pytest.raises(ValidationError):
            create_category(store, {'name': 'X', 'color': 'red'})

    def test_update(self, store, engine_category):
        assert update_category(store, engine_category['id'], {'color': '#000000'})
        assert list_categories(store)[0]['color'] == '#000000'
        assert list_categories(store)[0]['name'] == 'Engine'

    def test_update_missing(self, store):
        assert not update_category(store, 999, {'name': 'Nope'})

    def test_delete_keeps_tasks_uncategorized(self, store, engine_category, oil_task):
        assert delete_category(store, engine_category['id'])
        task = get_task(store, oil_task['id'])
        assert task is not None
        assert task['category_id'] is None

    def test_list_sorted_by_name(self, store):
        create_category(store, {'name': 'b'})
        create_category(store, {'name': 'a'})
        assert [c['name'] for c in list_categories(store)] == ['a', 'b']

    def test_filter_matches(self):
        assert category_filter_matches(3, set())
        assert category_filter_matches(3, {3})
        assert not category_filter_matches(3, {4})
        assert category_filter_matches(None, {UNCATEGORIZED})
        assert not category_filter_matches(None, {3})


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

class TestTasks:
    def test_create(self, store, oil_task):
        assert oil_task['auto_apply'] is True
        assert oil_task['estimated_duration'] == 30

    def test_auto_apply_defaults_false(self, belt_task):
        assert belt_task['auto_apply'] is False
        assert belt_task['category_id'] is None

    def test_negative_duration_rejected(self, store):
        with pytest.raises(ValidationError):
            create_task(store, {'name': 'X', 'estimated_duration': -5})

    def test_update_partial(self, store, oil_task):
        assert update_task(store, oil_task['id'], {'auto_apply': False})
        task = get_task(store, oil_task['id'])
        assert task['auto_apply'] is False
        assert task['name'] == 'Oil Change'

    def test_list_orders_uncategorized_last(self, store, engine_category, oil_task, belt_task):
        other = create_category(store, {'name': 'Air'})
        create_task(store, {'name': 'Zeta Filter', 'category_id': other['id']})
        names = [t['name'] for t in list_tasks(store)]
        assert names == ['Zeta Filter', 'Oil Change', 'Belt Inspection']

    def test_list_filters_by_category(self, store, engine_category, oil_task, belt_task):
        assert [t['id'] for t in list_tasks(store, engine_category['id'])] == [oil_task['id']]
        assert [t['id'] for t in list_tasks(store, UNCATEGORIZED)] == [belt_task['id']]

    def test_list_attaches_category(self, store, engine_category, oil_task):
        assert list_tasks(store)[0]['category']['name'] == 'Engine'

    def test_delete_removes_assignments(self, store, template, belt_task):
        add_task_to_template(store, template['id'], belt_task['id'])
        assert delete_task(store, belt_task['id'])
        assert list_template_tasks(store, template['id']) == []

    def test_delete_refused_with_history(self, store, belt_task):
        equipment = store.insert('equipment', {'name': 'M1', 'serial_number': 'S1', 'current_hours': 10})[0]
        store.insert('service_records', {
            'equipment_id': equipment['id'], 'task_id': belt_task['id'], 'scheduled_interval': 50,
            'performed_by': 'Sam', 'service_date': '2024-01-01', 'actual_hours': 50,
        })
        with pytest.raises(ValidationError):
            delete_task(store, belt_task['id'])
        assert get_task(store, belt_task['id']) is not None


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

class TestIntervalParsing:
    def test_parse_sorts_and_dedupes(self):
        assert parse_interval_input('250, 50,100, 50') == [50, 100, 250]

    def test_parse_drops_junk(self):
        assert parse_interval_input('50, abc, , -10, 0, 100') == [50, 100]

    def test_parse_merges_existing(self):
        assert parse_interval_input('75', existing=[50, 100]) == [50, 75, 100]

    def test_parse_empty(self):
        assert parse_interval_input('') == []
        assert parse_interval_input(None) == []

    def test_normalize_rejects_non_positive(self):
        with pytest.raises(ValidationError):
            normalize_intervals([50, 0])


class TestPresets:
    def test_create(self, standard_preset):
        assert standard_preset['intervals'] == [50, 100, 250, 500]

    def test_create_from_text(self, store):
        preset = create_preset(store, {'name': 'Short', 'intervals': '25, 8'})
        assert preset['intervals'] == [8, 25]

    def test_empty_ladder_rejected(self, store):
        with pytest.raises(ValidationError):
            create_preset(store, {'name': 'Empty', 'intervals': []})

    def test_name_required(self, store):
        with pytest.raises(ValidationError):
            create_preset(store, {'intervals': [50]})

    def test_list(self, store, standard_preset):
        create_preset(store, {'name': 'Alpha', 'intervals': [10]})
        assert [p['name'] for p in list_presets(store)] == ['Alpha', 'Standard Ladder']

    def test_update_prunes_template_assignments(self, store, template, standard_preset, oil_task, belt_task):
        add_task_to_template(store, template['id'], oil_task['id'])
        belt = add_task_to_template(store, template['id'], belt_task['id'])
        store.update('template_tasks', {'intervals': [500]}, {'id': belt['id']})

        assert update_preset(store, standard_preset['id'], {'intervals': [50, 100, 250]})

        assignments = list_template_tasks(store, template['id'])
        assert [a['task_id'] for a in assignments] == [oil_task['id']]
        assert assignments[0]['intervals'] == [50, 100, 250]
        assert get_preset(store, standard_preset['id'])['intervals'] == [50, 100, 250]

    def test_delete_unused(self, store):
        preset = create_preset(store, {'name': 'Spare', 'intervals': [10]})
        assert delete_preset(store, preset['id'])
        assert get_preset(store, preset['id']) is None

    def test_delete_in_use_refused(self, store, template, standard_preset):
        with pytest.raises(ValidationError):
            delete_preset(store, standard_preset['id'])

    def test_delete_after_template_moves(self, store, standard_preset):
        other = create_preset(store, {'name': 'Other', 'intervals': [10]})
        create_template(store, {'name': 'T', 'preset_id': other['id']})
        assert delete_preset(store, standard_preset['id'])
