"""
Recount article_count / comment_status from scratch and compare.

Usage: python manage.py verify_counters [--fix]

Exits non-zero when stale values are found and --fix is not given.
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from blog.counters import check_counters, repair_counters
from blog.models import Comment, Post, User
from store.backend import check_backend
from store.exceptions import ConnectionError


class Command(BaseCommand):
    help = 'Verify (and optionally repair) the denormalized blog counters'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Rewrite stale values from a fresh recount'
        )
        parser.add_argument(
            '--database',
            default=DEFAULT_DB_ALIAS,
            help='Database alias to run against'
        )

    def handle(self, *args, **options):
        using = options['database']
        try:
            check_backend(using, models=(User, Post, Comment))
        except ConnectionError as exc:
            raise CommandError(str(exc)) from exc

        if options['fix']:
            fixed = repair_counters(using)
            for m in fixed:
                self.stdout.write(f'Fixed {m.model} {m.pk} {m.field}: {m.stored} -> {m.expected}')
            self.stdout.write(self.style.SUCCESS(f'Repaired {len(fixed)} stale value(s)'))
            return

        mismatches = check_counters(using)
        if not mismatches:
            self.stdout.write(self.style.SUCCESS('All derived counters are consistent'))
            return

        for m in mismatches:
            self.stdout.write(f'{m.model} {m.pk} {m.field}: stored {m.stored}, expected {m.expected}')
        raise CommandError(f'{len(mismatches)} stale value(s); rerun with --fix')
