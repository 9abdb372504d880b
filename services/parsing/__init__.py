"""
Parsing services.

Services responsible for reading generated events from ROOT files.
"""

from .event_reader import EventReader, events_from_awkward

__all__ = [
    "EventReader",
    "events_from_awkward",
]
