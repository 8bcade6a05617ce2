"""
Generic CRUD access to the service master tables.

Every screen-level operation goes through select/insert/update/delete on one
of the tables below. Column names are checked against the registry so that
identifiers never come from user input. JSON and boolean columns are
converted on the way in and out.
"""

import json
import logging

from db import get_db, get_database_error
from errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Table registry
# ---------------------------------------------------------------------------

TABLES = {
    'service_settings': {
        'columns': ('pending_before_hours', 'pending_after_hours', 'master_admin_code'),
        'updated_at': True,
    },
    'task_categories': {
        'columns': ('name', 'description', 'color'),
        'updated_at': True,
    },
    'service_tasks': {
        'columns': ('name', 'description', 'estimated_duration', 'category_id', 'auto_apply'),
        'bool': ('auto_apply',),
        'updated_at': True,
    },
    'interval_presets': {
        'columns': ('name', 'description', 'intervals'),
        'json': ('intervals',),
        'updated_at': True,
    },
    'service_templates': {
        'columns': ('name', 'description', 'preset_id'),
        'updated_at': True,
    },
    'template_tasks': {
        'columns': ('template_id', 'task_id', 'intervals'),
        'json': ('intervals',),
    },
    'equipment': {
        'columns': ('name', 'serial_number', 'current_hours', 'template_id'),
        'updated_at': True,
    },
    'service_records': {
        'columns': ('equipment_id', 'task_id', 'template_id', 'scheduled_interval',
                    'performed_by', 'service_date', 'actual_hours', 'notes'),
    },
}

_QUERY_COLUMNS = ('id', 'created_at', 'updated_at')


def _table_def(table):
    table_def = TABLES.get(table)
    if table_def is None:
        raise ValidationError(f"Unknown table: {table}")
    return table_def


def _check_columns(table, columns, allow_meta=False):
    table_def = _table_def(table)
    allowed = set(table_def['columns'])
    if allow_meta:
        allowed.update(_QUERY_COLUMNS)
    unknown = [c for c in columns if c not in allowed]
    if unknown:
        raise ValidationError(f"Unknown column(s) for {table}: {', '.join(unknown)}")


def _encode(table, values):
    table_def = _table_def(table)
    encoded = {}
    for key, value in values.items():
        if key in table_def.get('json', ()) and value is not None:
            value = json.dumps(list(value))
        elif key in table_def.get('bool', ()) and value is not None:
            value = 1 if value else 0
        encoded[key] = value
    return encoded


def _decode(table, row):
    table_def = _table_def(table)
    r = dict(row)
    for key in table_def.get('json', ()):
        if isinstance(r.get(key), str):
            try:
                r[key] = json.loads(r[key])
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"Unreadable JSON in {table}.{key} for id={r.get('id')}")
                r[key] = []
    for key in table_def.get('bool', ()):
        if key in r and r[key] is not None:
            r[key] = bool(r[key])
    return r


def _where(filters):
    """Build an equality WHERE clause. A list/tuple/set value becomes IN (...)."""
    clauses = []
    params = []
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            values = list(value)
            if not values:
                clauses.append('1 = 0')
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(values)
        elif value is None:
            clauses.append(f'{column} IS NULL')
        else:
            clauses.append(f'{column} = ?')
            params.append(value)
    if not clauses:
        return '', params
    return ' WHERE ' + ' AND '.join(clauses), params


class DataStore:
    """The CRUD boundary consumed by the catalog, composer, records and views."""

    def __init__(self, db_path=None):
        self.db_path = db_path

    def _run(self, action, table, fn):
        try:
            with get_db(self.db_path) as conn:
                return fn(conn)
        except get_database_error() as e:
            logger.error(f"Store {action} on {table} failed: {e}")
            raise StoreError(f"{action} on {table} failed: {e}") from e

    def select(self, table, filters=None, order=None):
        """Return decoded rows of ``table`` matching ``filters``.

        Args:
            table: One of TABLES.
            filters: dict of column -> value (list value means IN).
            order: list of (column, 'asc'|'desc') pairs.

        Returns:
            list[dict]
        """
        filters = filters or {}
        order = order or []
        _check_columns(table, filters.keys(), allow_meta=True)
        _check_columns(table, [c for c, _ in order], allow_meta=True)

        where, params = _where(filters)
        query = f'SELECT * FROM {table}{where}'
        if order:
            parts = []
            for column, direction in order:
                direction = 'DESC' if str(direction).lower() == 'desc' else 'ASC'
                parts.append(f'{column} {direction}')
            query += ' ORDER BY ' + ', '.join(parts)

        rows = self._run('select', table, lambda conn: conn.execute(query, params).fetchall())
        return [_decode(table, row) for row in rows]

    def select_one(self, table, filters):
        rows = self.select(table, filters)
        return rows[0] if rows else None

    def insert(self, table, rows):
        """Insert rows and return them as stored (with ids and defaults)."""
        if isinstance(rows, dict):
            rows = [rows]
        for row in rows:
            _check_columns(table, row.keys())

        def _insert(conn):
            inserted = []
            for row in rows:
                values = _encode(table, row)
                columns = list(values.keys())
                if columns:
                    query = (f"INSERT INTO {table} ({', '.join(columns)}) "
                             f"VALUES ({', '.join('?' for _ in columns)})")
                else:
                    query = f'INSERT INTO {table} DEFAULT VALUES'
                cursor = conn.execute(query, [values[c] for c in columns])
                new_id = cursor.lastrowid
                stored = conn.execute(f'SELECT * FROM {table} WHERE id = ?', (new_id,)).fetchone()
                inserted.append(_decode(table, stored))
            return inserted

        inserted = self._run('insert', table, _insert)
        logger.debug(f"Inserted {len(inserted)} row(s) into {table}")
        return inserted

    def update(self, table, patch, filters):
        """Apply ``patch`` to rows matching ``filters``. Returns rows affected."""
        if not filters:
            raise ValidationError(f"Refusing unfiltered update on {table}")
        if not patch:
            return 0
        _check_columns(table, patch.keys())
        _check_columns(table, filters.keys(), allow_meta=True)

        values = _encode(table, patch)
        set_clauses = [f'{c} = ?' for c in values]
        params = list(values.values())
        if _table_def(table).get('updated_at'):
            set_clauses.append('updated_at = CURRENT_TIMESTAMP')
        where, where_params = _where(filters)
        query = f"UPDATE {table} SET {', '.join(set_clauses)}{where}"

        return self._run('update', table,
                         lambda conn: conn.execute(query, params + where_params).rowcount)

    def delete(self, table, filters):
        """Delete rows matching ``filters``. Returns rows affected."""
        if not filters:
            raise ValidationError(f"Refusing unfiltered delete on {table}")
        _check_columns(table, filters.keys(), allow_meta=True)
        where, params = _where(filters)
        return self._run('delete', table,
                         lambda conn: conn.execute(f'DELETE FROM {table}{where}', params).rowcount)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS service_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pending_before_hours INTEGER NOT NULL DEFAULT 20 CHECK (pending_before_hours >= 0),
        pending_after_hours INTEGER NOT NULL DEFAULT 15 CHECK (pending_after_hours >= 0),
        master_admin_code TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS task_categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        color TEXT NOT NULL DEFAULT '#64748b',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS service_tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        estimated_duration INTEGER NOT NULL DEFAULT 0,
        category_id INTEGER REFERENCES task_categories (id) ON DELETE SET NULL,
        auto_apply INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS interval_presets (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        intervals TEXT NOT NULL DEFAULT '[]',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS service_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        preset_id INTEGER REFERENCES interval_presets (id) ON DELETE SET NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS template_tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        template_id INTEGER NOT NULL REFERENCES service_templates (id) ON DELETE CASCADE,
        task_id INTEGER NOT NULL REFERENCES service_tasks (id) ON DELETE CASCADE,
        intervals TEXT NOT NULL DEFAULT '[]',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (template_id, task_id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS equipment (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        serial_number TEXT NOT NULL,
        current_hours REAL NOT NULL DEFAULT 0,
        template_id INTEGER REFERENCES service_templates (id) ON DELETE SET NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS service_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        equipment_id INTEGER NOT NULL REFERENCES equipment (id) ON DELETE CASCADE,
        task_id INTEGER NOT NULL REFERENCES service_tasks (id),
        template_id INTEGER REFERENCES service_templates (id) ON DELETE SET NULL,
        scheduled_interval INTEGER NOT NULL,
        performed_by TEXT NOT NULL,
        service_date TEXT NOT NULL,
        actual_hours REAL NOT NULL DEFAULT 0,
        notes TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (equipment_id, task_id, scheduled_interval)
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_template_tasks_template ON template_tasks (template_id)',
    'CREATE INDEX IF NOT EXISTS idx_service_records_equipment ON service_records (equipment_id)',
    'CREATE INDEX IF NOT EXISTS idx_service_tasks_category ON service_tasks (category_id)',
]


def init_service_tables(db_path=None):
    """Create all service master tables. Safe to call multiple times."""
    with get_db(db_path) as conn:
        for statement in SCHEMA:
            conn.execute(statement)
    logger.info("Service master tables initialized")
