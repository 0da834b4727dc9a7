"""
URL configuration for scse_project project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.conf import settings
from django.conf.urls.static import static
from django.urls import path, include

urlpatterns = [
    # Authentication endpoints (login, current session)
    path('api/auth/', include('core.user_accounts.auth_urls')),

    # Administration (users, groups, substitutions, directory, e-mail test, settings)
    path('api/admin/config/', include('core.app_settings.urls')),
    path('api/admin/', include('core.user_accounts.urls')),

    path('api/audit/', include('core.audit.urls')),

    # Movement processes
    path('api/machine-exits/', include('movements.machine_exit.urls')),
    path('api/transfers/', include('movements.transfer.urls')),
    path('api/upload/', include('movements.uploads.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
