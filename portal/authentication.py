from rest_framework.authentication import SessionAuthentication

# loaded by the REST_FRAMEWORK settings while rest_framework.views is importing,
# so this module must never import DRF views (or api_views)


class PortalSessionAuthentication(SessionAuthentication):
    # the portal has no django users, the middleware puts the principal on the request
    def authenticate(self, request):
        django_request = request._request
        principal = getattr(django_request, 'principal', None)
        if principal is None:
            return None
        self.enforce_csrf(request)
        return (principal, django_request.auth_session.token)

    def authenticate_header(self, request):
        # makes DRF answer 401 rather than 403 for anonymous requests
        return 'Session'
