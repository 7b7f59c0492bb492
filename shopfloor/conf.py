"""
Settings access for the shopfloor app.

Values come from the ``SHOPFLOOR`` dict in Django settings and fall back to
the defaults declared in ``module.SETTINGS``.
"""
from django.conf import settings

from .module import SETTINGS as DEFAULTS


def get_setting(name):
    overrides = getattr(settings, 'SHOPFLOOR', {}) or {}
    if name in overrides:
        return overrides[name]
    try:
        return DEFAULTS[name]
    except KeyError:
        raise KeyError(f"Unknown shopfloor setting: {name}")
