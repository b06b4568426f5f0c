from urllib.parse import urlparse

from django.conf import settings
from django.core.checks import Error, register


@register()
def check_portal_settings(app_configs, **kwargs):
    errors = []
    url = urlparse(getattr(settings, 'PORTAL_API_BASE_URL', '') or '')
    if url.scheme not in ('http', 'https') or not url.netloc:
        errors.append(Error(
            'PORTAL_API_BASE_URL must be an absolute http(s) url.',
            hint='e.g. http://localhost:8000/api',
            id='portal.E001',
        ))
    for name in ('PORTAL_MATERIAL_MAX_BYTES', 'PORTAL_GALLERY_MAX_BYTES', 'PORTAL_DOCUMENT_MAX_BYTES',
                 'PORTAL_API_TIMEOUT'):
        value = getattr(settings, name, None)
        if not isinstance(value, (int, float)) or value <= 0:
            errors.append(Error(f'{name} must be a positive number.', id='portal.E002'))
    return errors
