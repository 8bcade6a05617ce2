"""
Service settings: the pending-window thresholds and the master admin code.

The settings live in a single row of ``service_settings`` that is created the
first time they are saved. Callers load them once and hand the resulting
ServiceSettings value to the status engine and the authorization gate.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config import Config
from errors import ValidationError

logger = logging.getLogger(__name__)

SETTINGS_TABLE = 'service_settings'


@dataclass(frozen=True)
class ServiceSettings:
    pending_before_hours: int
    pending_after_hours: int
    master_admin_code: str = ''
    id: Optional[int] = None

    @classmethod
    def defaults(cls):
        return cls(
            pending_before_hours=Config.DEFAULT_PENDING_BEFORE_HOURS,
            pending_after_hours=Config.DEFAULT_PENDING_AFTER_HOURS,
            master_admin_code='',
        )

    def to_dict(self, include_code=False):
        data = {
            'id': self.id,
            'pending_before_hours': self.pending_before_hours,
            'pending_after_hours': self.pending_after_hours,
            'admin_code_configured': bool(self.master_admin_code),
        }
        if include_code:
            data['master_admin_code'] = self.master_admin_code
        return data


def _threshold(value, field):
    try:
        hours = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number of hours")
    if hours < 0:
        raise ValidationError(f"{field} must be zero or greater")
    return hours


def load_settings(store):
    """Return the saved settings, or the defaults when none were saved yet."""
    row = store.select_one(SETTINGS_TABLE, {})
    if not row:
        return ServiceSettings.defaults()
    return ServiceSettings(
        pending_before_hours=row['pending_before_hours'],
        pending_after_hours=row['pending_after_hours'],
        master_admin_code=row.get('master_admin_code') or '',
        id=row['id'],
    )


def save_settings(store, pending_before_hours, pending_after_hours, master_admin_code):
    """Update the settings row, creating it on first save.

    Returns:
        ServiceSettings: the stored values.
    """
    patch = {
        'pending_before_hours': _threshold(pending_before_hours, 'pending_before_hours'),
        'pending_after_hours': _threshold(pending_after_hours, 'pending_after_hours'),
        'master_admin_code': master_admin_code or '',
    }

    existing = store.select_one(SETTINGS_TABLE, {})
    if existing:
        store.update(SETTINGS_TABLE, patch, {'id': existing['id']})
        logger.info(f"Service settings updated: id={existing['id']}")
    else:
        row = store.insert(SETTINGS_TABLE, patch)[0]
        logger.info(f"Service settings created: id={row['id']}")

    return load_settings(store)
