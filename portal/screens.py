# shared load / write / delete flow used by every screen
# load on GET, write on POST then redirect so the list is always refetched

import asyncio
import logging

from asgiref.sync import async_to_sync, sync_to_async
from django.contrib import messages
from django.shortcuts import redirect, render
from django.urls import reverse

from .client import ApiError
from .filters import filter_records, search_records

logger = logging.getLogger(__name__)


class ScreenState:
    IDLE = 'idle'
    LOADED = 'loaded'
    LOAD_FAILED = 'load_failed'

    def __init__(self, status=IDLE, records=None, error=None):
        self.status = status
        self.records = records if records is not None else []
        self.error = error

    @property
    def loaded(self):
        return self.status == self.LOADED

    @property
    def failed(self):
        return self.status == self.LOAD_FAILED

    @classmethod
    def load_failed(cls, error):
        # never keep anything from a previous load around
        return cls(cls.LOAD_FAILED, [], error)


def load_collection(request, fetch, label='records', **filters):
    try:
        records = fetch(**filters)
    except ApiError as e:
        if e.is_unauthorized:
            raise
        logger.warning("Failed to load %s: %s", label, e.message)
        messages.error(request, f'Failed to load {label}: {e.message}')
        return ScreenState.load_failed(e.message)
    return ScreenState(ScreenState.LOADED, records)


def load_together(request, label='data', **fetches):
    """
    Run several fetches at once and only hand back when all of them are done.

    records is a dict keyed like the fetches. One failure fails the lot.
    """
    names = list(fetches)

    async def gather():
        return await asyncio.gather(*[
            sync_to_async(fetches[name], thread_sensitive=False)() for name in names
        ])

    try:
        results = async_to_sync(gather)()
    except ApiError as e:
        if e.is_unauthorized:
            raise
        logger.warning("Failed to load %s: %s", label, e.message)
        messages.error(request, f'Failed to load {label}: {e.message}')
        state = ScreenState.load_failed(e.message)
        state.records = {name: [] for name in names}
        return state
    return ScreenState(ScreenState.LOADED, dict(zip(names, results)))


def run_mutation(request, call, success, failure='Something went wrong'):
    try:
        call()
    except ApiError as e:
        if e.is_unauthorized:
            raise
        logger.warning("%s: %s", failure, e.message)
        messages.error(request, f'{failure}: {e.message}')
        return False
    messages.success(request, success)
    return True


def confirm_delete(request, label, delete, back_url, success=None):
    # GET shows the question, only POST with confirm=yes deletes anything
    if request.method == 'POST':
        if request.POST.get('confirm') == 'yes':
            run_mutation(request, delete, success or f'{label} deleted', f'Failed to delete {label}')
        return redirect(back_url)
    return render(request, 'portal/confirm_delete.html', {'label': label, 'cancel_url': back_url})


def shell_reverse(request, name, *args):
    # same screen name, whichever shell we're in
    return reverse(f'{request.resolver_match.namespace}:{name}', args=args)


def apply_query(request, records, search_fields, filters=None):
    """
    Search and dropdown filters from the query string.

    filters maps a query param to the record field it filters on.
    Returns the matching records and the active filter values for the template.
    """
    query = request.GET.get('q', '').strip()
    records = search_records(records, query, search_fields)
    active = {'q': query}
    for param, field in (filters or {}).items():
        value = request.GET.get(param) or 'all'
        records = filter_records(records, field, value)
        active[param] = value
    return records, active


def submit_form(request, form, call, success, failure):
    # False means the form was invalid and nothing was sent.
    # otherwise the write was attempted (and reported) and the caller redirects
    if not form.is_valid():
        messages.error(request, 'Please fix the errors.')
        return False
    run_mutation(request, lambda: call(form.payload()), success, failure)
    return True


def edit_screen(request, label, fetch, update, make_form, back_url):
    if request.method == 'POST':
        form = make_form(request.POST)
        if submit_form(request, form, update, f'{label} updated', f'Failed to update {label}'):
            return redirect(back_url)
    else:
        try:
            record = fetch()
        except ApiError as e:
            if e.is_unauthorized:
                raise
            logger.warning("Failed to load %s: %s", label, e.message)
            messages.error(request, f'Failed to load {label}: {e.message}')
            return redirect(back_url)
        form = make_form(initial=record)
    return render(request, 'portal/edit.html', {'form': form, 'label': label, 'cancel_url': back_url})
