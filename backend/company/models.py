"""
Models for the raw-SQL and CRUD demos.

Employee is read with hand-written SQL through Manager.raw() (see
company/queries.py); Student goes through the plain Repository.
"""
from django.db import models


class Employee(models.Model):
    name = models.CharField(max_length=100)
    department = models.CharField(max_length=100, db_index=True)
    salary = models.IntegerField(db_index=True)

    class Meta:
        db_table = 'employees'
        ordering = ['id']

    def __str__(self):
        return f"{self.name} ({self.department})"


class Student(models.Model):
    name = models.CharField(max_length=100)
    age = models.PositiveSmallIntegerField()
    grade = models.CharField(max_length=50)

    class Meta:
        db_table = 'students'
        ordering = ['id']

    def __str__(self):
        return self.name
