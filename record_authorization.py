"""
Authorization gate for editing completed service records.

A completed record can only be reopened for editing after the master admin
code is entered. A successful check hands out a one-shot grant for exactly
one record; the grant is consumed by the first edit and is never persisted.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Optional

from config import Config
from errors import AuthorizationError

logger = logging.getLogger(__name__)

_now = time.monotonic

REASON_NOT_CONFIGURED = 'not_configured'
REASON_INVALID_CODE = 'invalid_code'

REASON_MESSAGES = {
    REASON_NOT_CONFIGURED: 'Admin code not configured',
    REASON_INVALID_CODE: 'Invalid admin code',
}


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    reason: Optional[str] = None

    @property
    def message(self):
        return REASON_MESSAGES.get(self.reason, '')


def authorize(submitted_code, settings):
    """Check ``submitted_code`` against the configured master admin code.

    Never raises; failures come back as AuthResult(ok=False, reason=...).
    """
    if not settings.master_admin_code:
        return AuthResult(False, REASON_NOT_CONFIGURED)
    if submitted_code != settings.master_admin_code:
        return AuthResult(False, REASON_INVALID_CODE)
    return AuthResult(True)


class EditGrant:
    """Permission to perform one edit of one service record."""

    def __init__(self, record_id, token=None):
        self.record_id = record_id
        self.token = token or secrets.token_hex(16)
        self.issued_at = _now()
        self.consumed = False

    def consume(self, record_id):
        if self.consumed:
            raise AuthorizationError("Edit permission already used; re-enter the admin code")
        if record_id != self.record_id:
            raise AuthorizationError("Edit permission was granted for a different record")
        self.consumed = True


class GrantRegistry:
    """In-memory holder for outstanding grants, at most one per record.

    Used by the HTTP layer, where the grant has to survive between the
    authorize request and the edit request. A new authorization for a record
    replaces its previous grant, grants expire after ``ttl`` seconds, and a
    grant is removed when taken.
    """

    def __init__(self, ttl=None):
        self.ttl = Config.EDIT_GRANT_TTL_SECONDS if ttl is None else ttl
        self._lock = threading.Lock()
        self._grants = {}

    def _expired(self, grant):
        return _now() - grant.issued_at > self.ttl

    def _prune(self):
        for record_id in [r for r, g in self._grants.items() if self._expired(g)]:
            del self._grants[record_id]

    def request_edit(self, record_id, submitted_code, settings):
        """Run the gate and, on success, register a grant for ``record_id``.

        Returns:
            (AuthResult, EditGrant or None)
        """
        result, grant = request_edit_grant(record_id, submitted_code, settings)
        if grant is not None:
            with self._lock:
                self._prune()
                replaced = self._grants.get(record_id)
                self._grants[record_id] = grant
            if replaced is not None:
                logger.debug(f"Previous edit grant for record {record_id} replaced")
        return result, grant

    def take(self, token):
        """Remove and return the live grant carrying ``token``."""
        with self._lock:
            self._prune()
            record_id = next((r for r, g in self._grants.items() if token and g.token == token), None)
            grant = self._grants.pop(record_id, None) if record_id is not None else None
        if grant is None:
            raise AuthorizationError("Admin authorization required to edit a completed record")
        return grant

    def outstanding(self):
        with self._lock:
            self._prune()
            return len(self._grants)

    def clear(self):
        with self._lock:
            self._grants.clear()


def request_edit_grant(record_id, submitted_code, settings):
    """Gate check for in-process callers. Returns (AuthResult, EditGrant or None)."""
    result = authorize(submitted_code, settings)
    if not result.ok:
        logger.warning(f"Edit authorization denied for record {record_id}: {result.reason}")
        return result, None
    logger.info(f"Edit authorization granted for record {record_id}")
    return result, EditGrant(record_id)
