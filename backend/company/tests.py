"""
Tests for the raw employee queries and the student CRUD demo.
"""

from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APITestCase

from store.exceptions import NotFoundError
from store.repository import Repository

from .models import Employee, Student
from .queries import (
    get_all_highest_paid_employees,
    get_employees_by_department,
    get_highest_paid_employee,
)


def add_employees(*rows):
    return [
        Employee.objects.create(name=name, department=department, salary=salary)
        for name, department, salary in rows
    ]


class EmployeeQueryTestCase(TestCase):

    def setUp(self):
        self.alice, self.bob, self.carol = add_employees(
            ('Alice', 'Engineering', 15000),
            ('Bob', 'Engineering', 12000),
            ('Carol', 'Sales', 9000),
        )

    def test_by_department(self):
        employees = get_employees_by_department('Engineering')
        self.assertEqual([e.name for e in employees], ['Alice', 'Bob'])
        self.assertIsInstance(employees[0], Employee)
        self.assertEqual(employees[0].salary, 15000)

    def test_empty_department_is_not_found(self):
        with self.assertRaises(NotFoundError):
            get_employees_by_department('Legal')

    def test_department_value_is_a_parameter(self):
        with self.assertRaises(NotFoundError):
            get_employees_by_department("x' OR '1'='1")

    def test_highest_paid(self):
        self.assertEqual(get_highest_paid_employee().pk, self.alice.pk)

    def test_ties(self):
        (dave,) = add_employees(('Dave', 'Sales', 15000))

        top = get_all_highest_paid_employees()
        self.assertEqual({e.pk for e in top}, {self.alice.pk, dave.pk})

        single = get_highest_paid_employee()
        self.assertIn(single.pk, {self.alice.pk, dave.pk})
        # Lowest id wins the tie
        self.assertEqual(single.pk, self.alice.pk)


class EmptyEmployeeTableTestCase(TestCase):

    def test_highest_paid_not_found(self):
        with self.assertRaises(NotFoundError):
            get_highest_paid_employee()

    def test_ties_empty_list(self):
        self.assertEqual(get_all_highest_paid_employees(), [])


class StudentRepositoryTestCase(TestCase):

    def setUp(self):
        self.repo = Repository()

    def test_crud_cycle(self):
        young = Student(name='Li Si', age=12, grade='Grade 1')
        self.repo.create(young)
        adult = Student(name='Zhang San', age=20, grade='Grade 3')
        self.repo.create(adult)

        self.assertEqual(
            [s.pk for s in self.repo.find(Student, age__gt=18)],
            [adult.pk]
        )

        updated = self.repo.update_where(Student, {'name': 'Zhang San'}, {'grade': 'Grade 4'})
        self.assertEqual(updated, 1)
        self.assertEqual(self.repo.find_by_id(Student, adult.pk).grade, 'Grade 4')

        self.assertEqual(self.repo.delete_where(Student, age__lt=15), 1)
        self.assertEqual(self.repo.count(Student), 1)

    def test_update_where_no_match(self):
        self.assertEqual(self.repo.update_where(Student, {'name': 'Nobody'}, {'grade': 'X'}), 0)

    def test_delete_where_no_match(self):
        self.assertEqual(self.repo.delete_where(Student, age__lt=15), 0)


class CompanyCommandTestCase(TestCase):

    def test_student_crud(self):
        Student.objects.create(name='Wang Wu', age=10, grade='Grade 1')
        out = StringIO()

        call_command('student_crud', stdout=out)

        output = out.getvalue()
        self.assertIn('Students older than 18: 1', output)
        self.assertIn('Moved 1 student(s)', output)
        self.assertIn('Deleted 1 student(s) younger than 15', output)
        self.assertEqual(Student.objects.get(name='Zhang San').grade, 'Grade 4')
        self.assertFalse(Student.objects.filter(name='Wang Wu').exists())

    def test_employee_report_seeded(self):
        out = StringIO()
        call_command('employee_report', '--seed', stdout=out)

        output = out.getvalue()
        self.assertIn('Seeded 5 employees', output)
        self.assertIn('name: Bob, department: Engineering', output)
        tied = output.split('All employees tied for the highest salary:')[1]
        self.assertIn('Alice', tied)
        self.assertIn('Dave', tied)

    def test_employee_report_logs_and_continues(self):
        out = StringIO()
        with self.assertLogs('company', level='ERROR') as logs:
            call_command('employee_report', '--department', 'Legal', stdout=out)

        self.assertEqual(len(logs.records), 2)
        self.assertIn('All employees tied for the highest salary:', out.getvalue())


class EmployeeApiTestCase(APITestCase):

    def setUp(self):
        add_employees(
            ('Alice', 'Engineering', 15000),
            ('Bob', 'Sales', 15000),
        )

    def test_by_department(self):
        response = self.client.get('/api/employees/', {'department': 'Sales'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([e['name'] for e in response.data], ['Bob'])

    def test_unknown_department(self):
        response = self.client.get('/api/employees/', {'department': 'Legal'})
        self.assertEqual(response.status_code, 404)

    def test_department_required(self):
        response = self.client.get('/api/employees/')
        self.assertEqual(response.status_code, 400)

    def test_top_earner(self):
        response = self.client.get('/api/employees/top/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['name'], 'Alice')

        response = self.client.get('/api/employees/top/', {'ties': '1'})
        self.assertEqual(len(response.data), 2)
