"""
URL configuration for training_portal project.

Everything lives in the portal app, see portal/urls.py.
"""
from django.urls import include, path

urlpatterns = [
    path('', include('portal.urls')),
]
