"""
Core — Shared Constants

Audit action codes and pagination limits referenced across apps.

@file core/constants.py
"""

from core.models import AuditLog

AUDIT_ACTION_CREATE = AuditLog.ActionChoices.CREATE
AUDIT_ACTION_UPDATE = AuditLog.ActionChoices.UPDATE
AUDIT_ACTION_STATUS_CHANGE = AuditLog.ActionChoices.STATUS_CHANGE
AUDIT_ACTION_ARCHIVE = AuditLog.ActionChoices.ARCHIVE
AUDIT_ACTION_UNARCHIVE = AuditLog.ActionChoices.UNARCHIVE

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200
