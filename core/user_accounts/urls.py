"""
URL Configuration for the user administration panel.
Authentication endpoints are in auth_urls.py
"""
from django.urls import path
from . import views

app_name = 'user_accounts'

urlpatterns = [
    # Users
    path('users/', views.admin_user_list, name='admin_user_list'),
    path('users/bulk-status/', views.admin_user_bulk_status, name='admin_user_bulk_status'),
    path('users/<int:user_id>/', views.admin_user_detail, name='admin_user_detail'),
    path('managers/', views.manager_list, name='manager_list'),
    # Permission groups
    path('groups/', views.admin_group_list, name='admin_group_list'),
    path('groups/<int:group_id>/', views.admin_group_detail, name='admin_group_detail'),
    # Manager substitutions
    path('substitutions/', views.substitution_list, name='substitution_list'),
    path('substitutions/<int:substitution_id>/', views.substitution_detail, name='substitution_detail'),
    # Directory
    path('directory/test/', views.directory_test, name='directory_test'),
    path('directory/search/', views.directory_search, name='directory_search'),
    path('directory/import/', views.directory_import, name='directory_import'),
    path('directory/sync/', views.directory_sync, name='directory_sync'),
    # E-mail
    path('email/test/', views.email_test, name='email_test'),
]
