"""
Django Admin Configuration for Company Models
"""
from django.contrib import admin
from .models import Employee, Student


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ['name', 'department', 'salary']
    list_filter = ['department']
    search_fields = ['name']


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['name', 'age', 'grade']
    list_filter = ['grade']
    search_fields = ['name']
