from django.urls import path

from . import views

app_name = 'app_settings'

urlpatterns = [
    path('', views.app_setting_list, name='app_setting_list'),
]
