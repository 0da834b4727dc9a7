from django.urls import path
from . import views

app_name = 'transfer'

urlpatterns = [
    path('', views.transfer_list, name='transfer_list'),
    path('summary/', views.transfer_summary, name='transfer_summary'),
    path('<int:pk>/', views.transfer_detail, name='transfer_detail'),
    path('<int:pk>/exit/', views.transfer_exit, name='transfer_exit'),
    path('<int:pk>/arrival/', views.transfer_arrival, name='transfer_arrival'),
]
