from django import template
from django.template.defaultfilters import filesizeformat
from django.urls import reverse

register = template.Library()


@register.filter
def format_file_size(value):
    """
    Formats a byte count to be human readable.
    Materials already come back formatted ("2.4 MB") so strings pass through.
    """
    if value in (None, ''):
        return ''
    if isinstance(value, str):
        if not value.isdigit():
            return value
        value = int(value)
    if value < 1024:
        return f"{value} B"
    return filesizeformat(value)


@register.filter
def lookup(record, key):
    # record|lookup:"uploader.name"
    value = record
    for part in str(key).split('.'):
        if not isinstance(value, dict):
            return ''
        value = value.get(part)
    return '' if value is None else value


@register.simple_tag(takes_context=True)
def shell_url(context, name, *args):
    # url inside whichever shell the page was opened from
    namespace = context['request'].resolver_match.namespace
    return reverse(f'{namespace}:{name}', args=args)

