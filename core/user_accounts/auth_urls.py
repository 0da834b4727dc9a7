"""
URL Configuration for Authentication endpoints.
Administration endpoints are in urls.py
"""
from django.urls import path
from . import views

app_name = 'auth'

urlpatterns = [
    path('login/', views.login, name='login'),
    path('me/', views.me, name='me'),
]
