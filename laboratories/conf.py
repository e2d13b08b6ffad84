from django.conf import settings


DEFAULTS = {
    'TRUST_X_FORWARDED_FOR': False,
    'BULK_MAX_LINES': 1000,
    'DENIAL_MESSAGE': 'You are not authorized to vote from this location.',
}


def lab_access_setting(name):
    """Read a key from settings.LAB_ACCESS, falling back to the built-in default"""
    configured = getattr(settings, 'LAB_ACCESS', None) or {}
    if name in configured:
        return configured[name]
    return DEFAULTS[name]
