"""
Walk through the blog models: associations, eager loading and the counter
hooks.

Usage: python manage.py blog_demo [--clear]
"""

import logging

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from blog.models import Comment, Post, User
from blog.queries import (
    get_most_commented_post,
    get_user_with_posts_and_comments,
    list_posts,
    list_users,
)
from store.backend import check_backend
from store.exceptions import ConnectionError, QueryError
from store.repository import Repository

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Demonstrate associations and counter-maintenance hooks on users/posts/comments'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing comments, posts and users first'
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
        self.stdout.write(self.style.SUCCESS('Database connection OK'))

        repo = Repository(using=using)

        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear(repo)

        try:
            users = self._create_test_data(repo)
        except QueryError as exc:
            raise CommandError(f'Could not create test data: {exc}') from exc
        self.stdout.write(self.style.SUCCESS('Test data created'))

        self.stdout.write(f'\nPosts and comments of user {users[0].pk} ({users[0].name}):')
        try:
            self._show_user_posts(users[0].pk, using)
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

        self.stdout.write('\nMost commented post:')
        try:
            self._show_most_commented(using)
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

        self.stdout.write('\nCreating a post (article_count hook):')
        try:
            repo.create(Post(
                title='Hook test post',
                content='Creating a post bumps the author article_count.',
                user_id=users[0].pk,
            ))
            self.stdout.write(self.style.SUCCESS('Post created'))
        except QueryError as exc:
            logger.error('Could not create post: %s', exc)

        self.stdout.write('\nDeleting a comment (comment_status hook):')
        try:
            first = repo.find(Comment, order_by=('id',))[:1]
            if not first:
                self.stdout.write('No comments to delete')
            else:
                repo.delete(Comment, first[0].pk)
                self.stdout.write(self.style.SUCCESS(f'Comment {first[0].pk} deleted'))
        except QueryError as exc:
            logger.error('Could not delete comment: %s', exc)

        self.stdout.write('\nFinal state:')
        try:
            self._show_final_status(using)
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

    def _clear(self, repo):
        repo.delete_where(Comment)
        repo.delete_where(Post)
        repo.delete_where(User)

    def _create_test_data(self, repo):
        users = []
        for name, email, password in [
            ('alice', 'alice@example.com', 'pass123'),
            ('bob', 'bob@example.com', 'pass456'),
        ]:
            user = User(name=name, email=email)
            user.set_password(password)
            repo.create(user)
            users.append(user)

        posts = []
        for title, content, owner in [
            ('Getting started with Django', 'Django basics...', users[0]),
            ('Django ORM guide', 'Advanced ORM techniques...', users[0]),
            ('Web development in practice', 'Building web apps with Python...', users[1]),
        ]:
            post = Post(title=title, content=content, user_id=owner.pk)
            repo.create(post)
            posts.append(post)

        for content, post, author in [
            ('Great post!', posts[0], users[1]),
            ('Learned a lot', posts[0], users[0]),
            ('Looking forward to more', posts[1], users[1]),
        ]:
            repo.create(Comment(content=content, post_id=post.pk, user_id=author.pk))

        return users

    def _show_user_posts(self, user_id, using):
        user = get_user_with_posts_and_comments(user_id, using=using)
        for i, post in enumerate(user.posts.all(), start=1):
            comments = list(post.comments.all())
            self.stdout.write(f'  {i}. {post.title} (comments: {len(comments)})')
            for j, comment in enumerate(comments, start=1):
                self.stdout.write(f'    - {j}. {comment.content}')

    def _show_most_commented(self, using):
        post = get_most_commented_post(using=using)
        if post is None:
            self.stdout.write('  No posts')
            return
        self.stdout.write(
            f'  {post.title} (id: {post.pk}, comments: {post.comment_count})'
        )

    def _show_final_status(self, using):
        self.stdout.write('Articles per user:')
        for user in list_users(using=using):
            self.stdout.write(f'- {user.name}: {user.article_count} post(s)')

        self.stdout.write('Comment status per post:')
        for post in list_posts(using=using):
            self.stdout.write(f'- {post.title}: {post.comment_status}')
