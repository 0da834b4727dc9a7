from django.urls import path
from . import views

app_name = 'machine_exit'

urlpatterns = [
    path('', views.machine_exit_list, name='machine_exit_list'),
    path('summary/', views.machine_exit_summary, name='machine_exit_summary'),
    path('<int:pk>/', views.machine_exit_detail, name='machine_exit_detail'),
    path('<int:pk>/approve/', views.machine_exit_approve, name='machine_exit_approve'),
    path('<int:pk>/reject/', views.machine_exit_reject, name='machine_exit_reject'),
    path('<int:pk>/gate-exit/', views.machine_exit_gate_exit, name='machine_exit_gate_exit'),
    path('<int:pk>/return/', views.machine_exit_return, name='machine_exit_return'),
]
