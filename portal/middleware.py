"""
Attaches the portal session to every request and turns an expired backend
token into a clean logout.
"""

import logging

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import redirect

from . import client as backend
from .client import ApiError
from .session import AuthSession, CourseContext

logger = logging.getLogger(__name__)


class PortalSessionMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        auth = AuthSession(request)
        request.auth_session = auth
        request.principal = auth.principal if auth.is_authenticated else None
        request.course_context = CourseContext(request, request.principal)
        request.api = backend.get_api_client(auth.token if request.principal else None)
        return self.get_response(request)

    def process_exception(self, request, exception):
        # a 401 from anywhere means the token is dead
        if not isinstance(exception, ApiError) or not exception.is_unauthorized:
            return None
        logger.info("Backend rejected token on %s, logging out", request.path)
        request.auth_session.clear()
        if request.path.startswith('/api/'):
            return JsonResponse({'detail': 'Session expired'}, status=401)
        messages.warning(request, 'Your session has expired. Please log in again.')
        return redirect('login')
