"""
Basic create / read / update / delete on the students table.

Usage: python manage.py student_crud
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from company.models import Student
from store.backend import check_backend
from store.exceptions import ConnectionError, QueryError
from store.repository import Repository


class Command(BaseCommand):
    help = 'Create, query, update and delete students through the repository'

    def add_arguments(self, parser):
        parser.add_argument(
            '--database',
            default=DEFAULT_DB_ALIAS,
            help='Database alias to run against'
        )

    def handle(self, *args, **options):
        using = options['database']
        try:
            check_backend(using, models=(Student,))
        except ConnectionError as exc:
            raise CommandError(str(exc)) from exc

        repo = Repository(using=using)
        try:
            student = Student(name='Zhang San', age=20, grade='Grade 3')
            repo.create(student)
            self.stdout.write(f'Created student {student.name} (id: {student.pk})')

            adults = repo.find(Student, order_by=('id',), age__gt=18)
            self.stdout.write(f'Students older than 18: {len(adults)}')
            for s in adults:
                self.stdout.write(f'- {s.name}, age {s.age}, {s.grade}')

            updated = repo.update_where(Student, {'name': 'Zhang San'}, {'grade': 'Grade 4'})
            self.stdout.write(f'Moved {updated} student(s) named Zhang San to Grade 4')

            deleted = repo.delete_where(Student, age__lt=15)
            self.stdout.write(f'Deleted {deleted} student(s) younger than 15')
        except QueryError as exc:
            raise CommandError(f'Student CRUD failed: {exc}') from exc

        self.stdout.write(self.style.SUCCESS('Done'))
