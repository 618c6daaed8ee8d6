"""
Tests for the hook registry, the backend checks and the DRF error mapping.

Repository behaviour is exercised against real models in blog/tests.py and
company/tests.py.
"""

from types import SimpleNamespace

from django.test import SimpleTestCase, TestCase

from . import hooks
from .backend import check_backend
from .exceptions import (
    ConnectionError,
    ConstraintError,
    NotFoundError,
    QueryError,
    custom_exception_handler,
)


class Widget:
    def __init__(self, pk):
        self.pk = pk


class HookRegistryTestCase(SimpleTestCase):

    def setUp(self):
        self.calls = []

    def tearDown(self):
        for event in hooks.EVENTS:
            for callback in hooks.receivers(Widget, event):
                hooks.unregister(Widget, event, callback)

    def test_fire_runs_callbacks_in_order(self):
        @hooks.register(Widget, hooks.AFTER_CREATE)
        def first(instance, using):
            self.calls.append(('first', instance.pk, using))

        @hooks.register(Widget, hooks.AFTER_CREATE)
        def second(instance, using):
            self.calls.append(('second', instance.pk, using))

        fired = hooks.fire(hooks.AFTER_CREATE, Widget(7), using='other')

        self.assertEqual(fired, 2)
        self.assertEqual(self.calls, [('first', 7, 'other'), ('second', 7, 'other')])

    def test_fire_only_matching_event(self):
        @hooks.register(Widget, hooks.AFTER_DELETE)
        def on_delete(instance, using):
            self.calls.append(instance.pk)

        self.assertEqual(hooks.fire(hooks.AFTER_CREATE, Widget(1), using='default'), 0)
        self.assertEqual(self.calls, [])

    def test_register_twice_is_idempotent(self):
        def callback(instance, using):
            self.calls.append(instance.pk)

        hooks.register(Widget, hooks.AFTER_CREATE)(callback)
        hooks.register(Widget, hooks.AFTER_CREATE)(callback)

        hooks.fire(hooks.AFTER_CREATE, Widget(3), using='default')
        self.assertEqual(self.calls, [3])

    def test_unregister(self):
        def callback(instance, using):
            self.calls.append(instance.pk)

        hooks.register(Widget, hooks.AFTER_CREATE)(callback)
        self.assertTrue(hooks.unregister(Widget, hooks.AFTER_CREATE, callback))
        self.assertFalse(hooks.unregister(Widget, hooks.AFTER_CREATE, callback))

        hooks.fire(hooks.AFTER_CREATE, Widget(4), using='default')
        self.assertEqual(self.calls, [])

    def test_callback_errors_propagate(self):
        @hooks.register(Widget, hooks.AFTER_CREATE)
        def broken(instance, using):
            raise RuntimeError('boom')

        with self.assertRaises(RuntimeError):
            hooks.fire(hooks.AFTER_CREATE, Widget(5), using='default')

    def test_unknown_event(self):
        with self.assertRaises(ValueError):
            hooks.register(Widget, 'before_update')
        with self.assertRaises(ValueError):
            hooks.receivers(Widget, 'before_update')

    def test_receivers_returns_a_copy(self):
        def callback(instance, using):
            pass

        hooks.register(Widget, hooks.AFTER_CREATE)(callback)
        hooks.receivers(Widget, hooks.AFTER_CREATE).clear()
        self.assertEqual(hooks.receivers(Widget, hooks.AFTER_CREATE), [callback])


class BackendCheckTestCase(TestCase):

    def test_existing_tables(self):
        from blog.models import User
        check_backend('default', models=(User,))

    def test_missing_table(self):
        ghost = SimpleNamespace(_meta=SimpleNamespace(db_table='no_such_table'))
        with self.assertRaises(ConnectionError) as ctx:
            check_backend('default', models=(ghost,))
        self.assertIn('no_such_table', str(ctx.exception))


class ExceptionHandlerTestCase(SimpleTestCase):

    def test_status_codes(self):
        cases = [
            (NotFoundError('missing'), 404),
            (ConstraintError('duplicate'), 409),
            (ValueError('bad input'), 400),
            (QueryError('backend down'), 500),
        ]
        for exc, expected in cases:
            with self.subTest(exc=exc):
                response = custom_exception_handler(exc, {})
                self.assertEqual(response.status_code, expected)
                self.assertIn('error', response.data)

    def test_query_error_hides_details(self):
        response = custom_exception_handler(QueryError('password=hunter2'), {})
        self.assertNotIn('hunter2', response.data['error'])
