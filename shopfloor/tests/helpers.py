"""Shared helpers for Shopfloor tests."""

from datetime import datetime, timedelta

from django.utils import timezone


def tomorrow_at(hour, minute=0):
    """Aware datetime for tomorrow at ``hour:minute`` in the current timezone."""
    day = timezone.localdate() + timedelta(days=1)
    return timezone.make_aware(datetime(day.year, day.month, day.day, hour, minute))


def drain(subscription):
    """All events queued on a subscription."""
    events = []
    while not subscription.queue.empty():
        events.append(subscription.queue.get_nowait())
    return events


def event_types(subscription):
    return [event.type for event in drain(subscription)]
