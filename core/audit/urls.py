"""
URL Configuration for the audit log.
"""
from django.urls import path

from . import views

app_name = 'audit'

urlpatterns = [
    path('', views.audit_event_list, name='audit_event_list'),
    path('actions/', views.audit_action_list, name='audit_action_list'),
    path('entity-types/', views.audit_entity_type_list, name='audit_entity_type_list'),
]
