"""
Company App URL Configuration
"""
from django.urls import path
from .views import EmployeeListView, TopEarnerView

urlpatterns = [
    path('employees/', EmployeeListView.as_view(), name='employee-list'),
    path('employees/top/', TopEarnerView.as_view(), name='employee-top'),
]
