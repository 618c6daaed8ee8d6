"""
Tests for the blog models

Focus areas:
1. Counter maintenance (article_count, comment_status) through the Repository
2. Rollback when a counter hook fails
3. Eager loading of User -> Posts -> Comments (bounded query count)
4. API and management commands
"""

from io import StringIO
from unittest.mock import patch

from django.contrib import admin
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError, transaction
from django.db.models.query import QuerySet
from django.test import RequestFactory, SimpleTestCase, TestCase
from rest_framework.test import APITestCase

from store import hooks
from store.exceptions import ConstraintError, NotFoundError, QueryError
from store.repository import Repository

from .counters import (
    check_counters,
    on_comment_created,
    on_comment_deleted,
    on_post_created,
    on_post_deleted,
    repair_counters,
)
from .models import Comment, Post, User
from .queries import get_most_commented_post, get_user_with_posts_and_comments

HAS = Post.CommentStatus.HAS_COMMENTS
NONE = Post.CommentStatus.NO_COMMENTS


class BlogFixtureMixin:
    """Creates rows through the Repository so the hooks always run."""

    def setUp(self):
        self.repo = Repository()

    def make_user(self, name):
        user = User(name=name, email=f'{name}@example.com')
        user.set_password('pass')
        self.repo.create(user)
        return user

    def make_post(self, user, title='Post'):
        post = Post(title=title, content='Content', user_id=user.pk)
        self.repo.create(post)
        return post

    def make_comment(self, post, user, content='Comment'):
        comment = Comment(content=content, post_id=post.pk, user_id=user.pk)
        self.repo.create(comment)
        return comment

    def status_of(self, post):
        return Post.objects.get(pk=post.pk).comment_status

    def article_count_of(self, user):
        return User.objects.get(pk=user.pk).article_count


class HookRegistrationTestCase(TestCase):

    def test_counter_hooks_registered(self):
        self.assertIn(on_post_created, hooks.receivers(Post, hooks.AFTER_CREATE))
        self.assertIn(on_post_deleted, hooks.receivers(Post, hooks.AFTER_DELETE))
        self.assertIn(on_comment_created, hooks.receivers(Comment, hooks.AFTER_CREATE))
        self.assertIn(on_comment_deleted, hooks.receivers(Comment, hooks.AFTER_DELETE))

    def test_no_hooks_for_user(self):
        self.assertEqual(hooks.receivers(User, hooks.AFTER_CREATE), [])
        self.assertEqual(hooks.receivers(User, hooks.AFTER_DELETE), [])


class ArticleCountTestCase(BlogFixtureMixin, TestCase):

    def test_new_user_has_zero_articles(self):
        user = self.make_user('alice')
        self.assertEqual(self.article_count_of(user), 0)

    def test_each_post_increments_owner(self):
        alice = self.make_user('alice')
        bob = self.make_user('bob')

        for n in range(1, 6):
            self.make_post(alice, title=f'P{n}')
            self.assertEqual(self.article_count_of(alice), n)

        self.assertEqual(self.article_count_of(bob), 0)
        # Recount from scratch matches the incrementally maintained value
        self.assertEqual(self.article_count_of(alice), Post.objects.filter(user=alice).count())
        self.assertEqual(check_counters('default'), [])

    def test_hook_failure_rolls_back_post(self):
        """A failing counter update must leave no Post behind."""
        alice = self.make_user('alice')
        self.make_post(alice, title='kept')

        with patch('blog.counters.increment_article_count',
                   side_effect=DatabaseError('simulated failure')):
            with self.assertRaises(QueryError):
                self.make_post(alice, title='rolled back')

        self.assertEqual(Post.objects.count(), 1)
        self.assertFalse(Post.objects.filter(title='rolled back').exists())
        self.assertEqual(self.article_count_of(alice), 1)

    def test_missing_owner_rolls_back_post(self):
        with self.assertRaises(ConstraintError):
            self.repo.create(Post(title='Orphan', content='x', user_id=999999))
        self.assertEqual(Post.objects.count(), 0)

    def test_post_delete_recounts_owner(self):
        alice = self.make_user('alice')
        first = self.make_post(alice)
        self.make_post(alice)

        self.repo.delete(Post, first.pk)

        self.assertEqual(self.article_count_of(alice), 1)

    def test_post_with_comments_cannot_be_deleted(self):
        alice = self.make_user('alice')
        post = self.make_post(alice)
        self.make_comment(post, alice)

        with self.assertRaises(ConstraintError):
            self.repo.delete(Post, post.pk)

        self.assertTrue(Post.objects.filter(pk=post.pk).exists())
        self.assertEqual(self.article_count_of(alice), 1)

    def test_user_with_posts_cannot_be_deleted(self):
        alice = self.make_user('alice')
        self.make_post(alice)

        with self.assertRaises(ConstraintError):
            self.repo.delete(User, alice.pk)


class CommentStatusTestCase(BlogFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')
        self.post = self.make_post(self.alice)

    def test_scenario_create_then_delete_comment(self):
        self.assertEqual(self.article_count_of(self.alice), 1)
        self.assertEqual(self.status_of(self.post), NONE)

        c1 = self.make_comment(self.post, self.bob)
        self.assertEqual(self.status_of(self.post), HAS)

        self.repo.delete(Comment, c1.pk)
        self.assertEqual(self.status_of(self.post), NONE)

    def test_deleting_non_last_comment_keeps_status(self):
        c1 = self.make_comment(self.post, self.bob)
        self.make_comment(self.post, self.alice)

        self.repo.delete(Comment, c1.pk)

        self.assertEqual(self.status_of(self.post), HAS)

    def test_status_matches_fresh_count_after_every_delete(self):
        comments = [self.make_comment(self.post, self.bob, f'c{i}') for i in range(4)]

        for comment in reversed(comments):
            self.repo.delete(Comment, comment.pk)
            remaining = Comment.objects.filter(post=self.post).count()
            expected = HAS if remaining > 0 else NONE
            self.assertEqual(self.status_of(self.post), expected)

        self.assertEqual(self.status_of(self.post), NONE)

    def test_bulk_delete_runs_hooks(self):
        other = self.make_post(self.bob)
        for i in range(3):
            self.make_comment(self.post, self.bob, f'c{i}')
        keep = self.make_comment(other, self.alice)

        deleted = self.repo.delete_where(Comment, post_id=self.post.pk)

        self.assertEqual(deleted, 3)
        self.assertEqual(self.status_of(self.post), NONE)
        self.assertEqual(self.status_of(other), HAS)
        self.assertTrue(Comment.objects.filter(pk=keep.pk).exists())

    def test_status_hook_failure_rolls_back_delete(self):
        c1 = self.make_comment(self.post, self.bob)

        with patch('blog.counters.refresh_comment_status',
                   side_effect=DatabaseError('simulated failure')):
            with self.assertRaises(QueryError):
                self.repo.delete(Comment, c1.pk)

        self.assertTrue(Comment.objects.filter(pk=c1.pk).exists())
        self.assertEqual(self.status_of(self.post), HAS)

    def test_delete_missing_comment(self):
        with self.assertRaises(NotFoundError):
            self.repo.delete(Comment, 424242)


class BrokenReferenceTestCase(BlogFixtureMixin, TestCase):
    """
    SQLite checks foreign keys at COMMIT, so inside an outer atomic() block
    a dangling reference must be caught by the repository itself.
    """

    def setUp(self):
        super().setUp()
        self.alice = self.make_user('alice')
        self.post = self.make_post(self.alice)

    def test_comment_on_missing_post(self):
        with transaction.atomic():
            with self.assertRaises(ConstraintError):
                self.repo.create(Comment(content='x', post_id=424242, user_id=self.alice.pk))
            self.assertEqual(Comment.objects.count(), 0)

    def test_comment_by_missing_author(self):
        comment = Comment(content='x', post_id=self.post.pk, user_id=424242)
        with transaction.atomic():
            with self.assertRaises(ConstraintError):
                self.repo.create(comment)
            self.assertIsNone(comment.pk)
            self.assertEqual(Comment.objects.count(), 0)
        self.assertEqual(self.status_of(self.post), NONE)

    def test_post_for_missing_owner(self):
        with transaction.atomic():
            with self.assertRaises(ConstraintError):
                self.repo.create(Post(title='Orphan', content='x', user_id=424242))
            self.assertEqual(Post.objects.count(), 1)
        self.assertEqual(self.article_count_of(self.alice), 1)


class CounterLockingTestCase(BlogFixtureMixin, TestCase):
    """
    The recount hooks lock the parent row before reading the children.
    SQLite drops FOR UPDATE from the SQL, so the calls are recorded instead.
    """

    def setUp(self):
        super().setUp()
        self.alice = self.make_user('alice')
        self.post = self.make_post(self.alice)
        self.locked = []

        original = QuerySet.select_for_update
        locked = self.locked

        def recording_select_for_update(queryset, *args, **kwargs):
            locked.append(queryset.model)
            return original(queryset, *args, **kwargs)

        patcher = patch.object(QuerySet, 'select_for_update', recording_select_for_update)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_comment_create_locks_post_then_reads_comments(self):
        self.make_comment(self.post, self.alice)
        self.assertEqual(self.locked, [Post, Comment])

    def test_comment_delete_locks_post(self):
        comment = self.make_comment(self.post, self.alice)
        del self.locked[:]

        self.repo.delete(Comment, comment.pk)

        # the row being deleted, then the parent, then the remaining children
        self.assertEqual(self.locked, [Comment, Post, Comment])
        self.assertEqual(self.status_of(self.post), NONE)

    def test_post_create_locks_owner(self):
        self.make_post(self.alice)
        self.assertEqual(self.locked, [User])

    def test_post_delete_locks_owner_before_recount(self):
        self.repo.delete(Post, self.post.pk)
        self.assertEqual(self.locked, [Post, User, Post])
        self.assertEqual(self.article_count_of(self.alice), 0)


class DerivedFieldTestCase(BlogFixtureMixin, TestCase):

    def test_create_ignores_caller_supplied_counter(self):
        user = User(name='carol', email='carol@example.com', password='x', article_count=7)
        self.repo.create(user)
        self.assertEqual(self.article_count_of(user), 0)

    def test_create_ignores_caller_supplied_status(self):
        alice = self.make_user('alice')
        post = Post(title='T', content='C', user_id=alice.pk, comment_status=HAS)
        self.repo.create(post)
        self.assertEqual(self.status_of(post), NONE)

    def test_update_refuses_derived_fields(self):
        alice = self.make_user('alice')
        with self.assertRaises(ValueError):
            self.repo.update(User, alice.pk, {'article_count': 10})
        post = self.make_post(alice)
        with self.assertRaises(ValueError):
            self.repo.update(Post, post.pk, {'comment_status': HAS})

    def test_update_refuses_unknown_field(self):
        alice = self.make_user('alice')
        with self.assertRaises(ValueError):
            self.repo.update(User, alice.pk, {'nickname': 'al'})

    def test_update_partial_fields(self):
        alice = self.make_user('alice')
        before = User.objects.get(pk=alice.pk).updated_at

        self.repo.update(User, alice.pk, {'email': 'alice@new.example.com'})

        reloaded = User.objects.get(pk=alice.pk)
        self.assertEqual(reloaded.email, 'alice@new.example.com')
        self.assertEqual(reloaded.name, 'alice')
        self.assertGreaterEqual(reloaded.updated_at, before)

    def test_update_missing_row(self):
        with self.assertRaises(NotFoundError):
            self.repo.update(User, 999, {'email': 'x@example.com'})


class RepositoryReadTestCase(BlogFixtureMixin, TestCase):

    def test_find_by_id_not_found(self):
        with self.assertRaises(NotFoundError):
            self.repo.find_by_id(User, 12345)

    def test_find_empty_is_not_an_error(self):
        self.assertEqual(self.repo.find(User, name='nobody'), [])

    def test_find_required_empty_raises(self):
        with self.assertRaises(NotFoundError):
            self.repo.find_required(User, name='nobody')

    def test_find_required_returns_rows(self):
        alice = self.make_user('alice')
        rows = self.repo.find_required(User, name='alice')
        self.assertEqual([u.pk for u in rows], [alice.pk])

    def test_duplicate_name_is_constraint_error(self):
        self.make_user('alice')
        duplicate = User(name='alice', email='other@example.com', password='x')
        with self.assertRaises(ConstraintError):
            self.repo.create(duplicate)
        self.assertIsNone(duplicate.pk)
        self.assertEqual(User.objects.filter(name='alice').count(), 1)

    def test_password_is_hashed(self):
        alice = self.make_user('alice')
        stored = User.objects.get(pk=alice.pk)
        self.assertNotEqual(stored.password, 'pass')
        self.assertTrue(stored.check_password('pass'))


class QueryTestCase(BlogFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')
        self.p1 = self.make_post(self.alice, 'P1')
        self.p2 = self.make_post(self.alice, 'P2')
        self.p3 = self.make_post(self.bob, 'P3')

    def test_user_subtree_in_three_queries(self):
        for i in range(10):
            self.make_comment(self.p1, self.bob, f'c{i}')
        self.make_comment(self.p2, self.bob, 'only')

        with self.assertNumQueries(3):
            user = get_user_with_posts_and_comments(self.alice.pk)
            tree = [
                (post.title, [c.content for c in post.comments.all()])
                for post in user.posts.all()
            ]

        self.assertEqual(user.name, 'alice')
        self.assertEqual([title for title, _ in tree], ['P1', 'P2'])
        self.assertEqual(len(tree[0][1]), 10)
        self.assertEqual(tree[1][1], ['only'])

    def test_user_subtree_missing_user(self):
        with self.assertRaises(NotFoundError):
            get_user_with_posts_and_comments(999)

    def test_most_commented_post(self):
        self.make_comment(self.p2, self.bob)
        self.make_comment(self.p2, self.alice)
        self.make_comment(self.p3, self.alice)

        post = get_most_commented_post()

        self.assertEqual(post.pk, self.p2.pk)
        self.assertEqual(post.comment_count, 2)

    def test_most_commented_tie_goes_to_lowest_id(self):
        self.make_comment(self.p3, self.alice)
        self.make_comment(self.p2, self.alice)

        self.assertEqual(get_most_commented_post().pk, self.p2.pk)

    def test_most_commented_includes_uncommented_posts(self):
        post = get_most_commented_post()
        self.assertEqual(post.pk, self.p1.pk)
        self.assertEqual(post.comment_count, 0)


class MostCommentedEmptyTestCase(TestCase):

    def test_no_posts(self):
        self.assertIsNone(get_most_commented_post())


class CounterAuditTestCase(BlogFixtureMixin, TestCase):

    def test_detects_and_repairs_drift(self):
        alice = self.make_user('alice')
        post = self.make_post(alice)
        self.make_comment(post, alice)

        # Writes that bypass the Repository
        User.objects.filter(pk=alice.pk).update(article_count=5)
        Post.objects.filter(pk=post.pk).update(comment_status=NONE)

        mismatches = check_counters('default')
        self.assertEqual(
            {(m.model, m.field, m.expected) for m in mismatches},
            {('User', 'article_count', 1), ('Post', 'comment_status', 'HasComments')},
        )

        fixed = repair_counters('default')
        self.assertEqual(len(fixed), 2)
        self.assertEqual(check_counters('default'), [])
        self.assertEqual(self.article_count_of(alice), 1)
        self.assertEqual(self.status_of(post), HAS)


class BlogApiTestCase(BlogFixtureMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.alice = self.make_user('alice')
        self.bob = self.make_user('bob')

    def test_create_post_updates_article_count(self):
        response = self.client.post(
            '/api/posts/',
            {'title': 'Hello', 'content': 'World', 'user': self.alice.pk},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['comment_status'], 'NoComments')
        self.assertEqual(self.article_count_of(self.alice), 1)

    def test_create_post_unknown_user(self):
        response = self.client.post(
            '/api/posts/',
            {'title': 'Hello', 'content': 'World', 'user': 9999},
            format='json'
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(Post.objects.count(), 0)

    def test_comment_lifecycle(self):
        post = self.make_post(self.alice)

        response = self.client.post(
            f'/api/posts/{post.pk}/comments/',
            {'content': 'Nice', 'user': self.bob.pk},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.status_of(post), HAS)

        response = self.client.delete(f'/api/comments/{response.data["id"]}/')
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.status_of(post), NONE)

    def test_comment_by_unknown_user(self):
        post = self.make_post(self.alice)
        response = self.client.post(
            f'/api/posts/{post.pk}/comments/',
            {'content': 'Nice', 'user': 9999},
            format='json'
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(Comment.objects.count(), 0)

    def test_comment_on_unknown_post(self):
        response = self.client.post(
            '/api/posts/9999/comments/',
            {'content': 'Nice', 'user': self.bob.pk},
            format='json'
        )
        self.assertEqual(response.status_code, 404)

    def test_empty_comment_rejected(self):
        post = self.make_post(self.alice)
        response = self.client.post(
            f'/api/posts/{post.pk}/comments/',
            {'content': '   ', 'user': self.bob.pk},
            format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_delete_missing_comment(self):
        response = self.client.delete('/api/comments/777/')
        self.assertEqual(response.status_code, 404)
        self.assertIn('error', response.data)

    def test_user_subtree(self):
        post = self.make_post(self.alice, 'P1')
        self.make_comment(post, self.bob, 'first')

        response = self.client.get(f'/api/users/{self.alice.pk}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['article_count'], 1)
        self.assertEqual(response.data['posts'][0]['title'], 'P1')
        self.assertEqual(response.data['posts'][0]['comments'][0]['content'], 'first')
        self.assertNotIn('password', response.data)

    def test_most_commented_empty(self):
        response = self.client.get('/api/posts/most-commented/')
        self.assertEqual(response.status_code, 404)

    def test_most_commented(self):
        post = self.make_post(self.alice)
        self.make_comment(post, self.bob)
        response = self.client.get('/api/posts/most-commented/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['comment_count'], 1)


class CommandTestCase(TestCase):

    def test_blog_demo(self):
        out = StringIO()
        call_command('blog_demo', stdout=out)
        output = out.getvalue()

        self.assertIn('Getting started with Django (comments: 2)', output)
        self.assertIn('Most commented post:', output)
        self.assertIn('- alice: 3 post(s)', output)
        self.assertIn('- bob: 1 post(s)', output)

        alice = User.objects.get(name='alice')
        self.assertIn(f'Posts and comments of user {alice.pk} (alice):', output)
        self.assertEqual(alice.article_count, 3)
        # First comment deleted, the second one on the same post remains
        first_post = Post.objects.get(title='Getting started with Django')
        self.assertEqual(first_post.comment_status, HAS)
        self.assertEqual(Post.objects.get(title='Hook test post').comment_status, NONE)
        self.assertEqual(check_counters('default'), [])

    def test_blog_demo_rerun_requires_clear(self):
        call_command('blog_demo', stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command('blog_demo', stdout=StringIO())

        call_command('blog_demo', '--clear', stdout=StringIO())
        self.assertEqual(User.objects.count(), 2)
        self.assertEqual(Post.objects.count(), 4)

    def test_verify_counters(self):
        call_command('blog_demo', stdout=StringIO())
        out = StringIO()
        call_command('verify_counters', stdout=out)
        self.assertIn('consistent', out.getvalue())

        User.objects.filter(name='bob').update(article_count=0)
        with self.assertRaises(CommandError):
            call_command('verify_counters', stdout=StringIO())

        out = StringIO()
        call_command('verify_counters', '--fix', stdout=out)
        self.assertIn('Repaired 1 stale value(s)', out.getvalue())
        self.assertEqual(User.objects.get(name='bob').article_count, 1)


class AdminPermissionTestCase(SimpleTestCase):
    """Admin writes skip the Repository, so adding blog rows there is off."""

    def test_add_disabled(self):
        request = RequestFactory().get('/admin/')
        for model in (User, Post, Comment):
            with self.subTest(model=model.__name__):
                self.assertFalse(admin.site._registry[model].has_add_permission(request))
