"""
Seed data for the service master catalog.
Default task categories, common service tasks for engine-driven fleet
equipment, and standard interval presets.

Usage:
    from service_seed_data import seed_defaults
    seed_defaults(DataStore())
"""

import logging

from service_catalog import create_category, create_preset, create_task

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

DEFAULT_CATEGORIES = [
    {"name": "Engine", "description": "Engine oil, filters, cooling and fuel system", "color": "#EF4444"},
    {"name": "Hydraulics", "description": "Hydraulic fluid, filters, hoses", "color": "#3B82F6"},
    {"name": "Drivetrain", "description": "Belts, bearings, transmission", "color": "#F59E0B"},
    {"name": "Electrical", "description": "Battery, wiring, lights", "color": "#8B5CF6"},
    {"name": "Inspection", "description": "Visual checks and adjustments", "color": "#10B981"},
]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

DEFAULT_TASKS = [
    {"name": "Engine Oil & Filter Change", "category": "Engine", "estimated_duration": 30, "auto_apply": True,
     "description": "Drain oil, replace filter, refill to the full mark."},
    {"name": "Air Filter Replacement", "category": "Engine", "estimated_duration": 15, "auto_apply": False,
     "description": "Replace primary element. Inspect safety element."},
    {"name": "Fuel Filter Replacement", "category": "Engine", "estimated_duration": 20, "auto_apply": False,
     "description": "Replace fuel filter and drain the water separator."},
    {"name": "Coolant Check / Flush", "category": "Engine", "estimated_duration": 45, "auto_apply": False,
     "description": "Check concentration, flush and refill at major intervals."},
    {"name": "Hydraulic Fluid & Filter Change", "category": "Hydraulics", "estimated_duration": 60, "auto_apply": False,
     "description": "Replace hydraulic fluid and return filter."},
    {"name": "Hydraulic Hose Inspection", "category": "Hydraulics", "estimated_duration": 20, "auto_apply": False,
     "description": "Check hoses and fittings for leaks, abrasion and cracks."},
    {"name": "Belt Inspection / Replacement", "category": "Drivetrain", "estimated_duration": 25, "auto_apply": False,
     "description": "Inspect for glazing, cracks and fraying; replace as needed."},
    {"name": "Grease All Fittings", "category": "Drivetrain", "estimated_duration": 20, "auto_apply": True,
     "description": "Grease pivots, bearings and wheel hubs."},
    {"name": "Battery Inspection", "category": "Electrical", "estimated_duration": 10, "auto_apply": False,
     "description": "Clean terminals, test charge, check electrolyte."},
    {"name": "Safety Walk-Around", "category": "Inspection", "estimated_duration": 10, "auto_apply": True,
     "description": "Guards, interlocks, lights, tire condition."},
]


# ---------------------------------------------------------------------------
# Interval presets
# ---------------------------------------------------------------------------

DEFAULT_PRESETS = [
    {"name": "Standard Ladder", "description": "Typical light equipment schedule",
     "intervals": [50, 100, 250, 500]},
    {"name": "Heavy Equipment", "description": "Extended intervals for diesel fleet",
     "intervals": [250, 500, 1000, 2000]},
    {"name": "Short Cycle", "description": "High-wear attachments",
     "intervals": [8, 25, 50, 100]},
]


def seed_defaults(store):
    """Populate an empty catalog with the defaults above.

    Does nothing if any category, task or preset already exists.

    Returns:
        dict: counts of rows created per kind.
    """
    counts = {'categories': 0, 'tasks': 0, 'presets': 0}
    if (store.select('task_categories') or store.select('service_tasks')
            or store.select('interval_presets')):
        logger.info("Catalog already populated; skipping seed")
        return counts

    category_ids = {}
    for category in DEFAULT_CATEGORIES:
        row = create_category(store, category)
        category_ids[row['name']] = row['id']
        counts['categories'] += 1

    for task in DEFAULT_TASKS:
        data = dict(task)
        data['category_id'] = category_ids.get(data.pop('category'))
        create_task(store, data)
        counts['tasks'] += 1

    for preset in DEFAULT_PRESETS:
        create_preset(store, preset)
        counts['presets'] += 1

    logger.info(f"Seeded catalog: {counts}")
    return counts
