"""Audit package — structured portfolio events and their persistence."""

from aibasket.audit.event_log import EventLog, EventSink  # noqa: F401
from aibasket.audit.sql_sink import SqlEventSink  # noqa: F401
