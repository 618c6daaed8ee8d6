"""
Read-side queries for the blog demo
===================================

USER SUBTREE (User -> Posts -> Comments):
-----------------------------------------
Naive traversal:
    user = User.objects.get(id=1)            # 1 query
    for post in user.posts.all():            # 1 query
        for comment in post.comments.all():  # N queries (N+1!)

prefetch_related('posts__comments') issues one query per level instead:

    SELECT * FROM users WHERE id = %s
    SELECT * FROM posts WHERE user_id IN (%s)
    SELECT * FROM comments WHERE post_id IN (...)

3 queries regardless of how many posts or comments there are.

MOST COMMENTED POST:
--------------------
    SELECT posts.*, COUNT(comments.id) AS comment_count
    FROM posts LEFT OUTER JOIN comments ON comments.post_id = posts.id
    GROUP BY posts.id
    ORDER BY comment_count DESC, posts.id ASC
    LIMIT 1

LEFT OUTER JOIN keeps posts with zero comments. Ties on the count go to
the lowest id.
"""

from typing import List, Optional

from django.db import DEFAULT_DB_ALIAS, DatabaseError
from django.db.models import Count, Prefetch

from store.exceptions import NotFoundError, QueryError

from .models import Comment, Post, User


def get_user_with_posts_and_comments(user_id: int, using: str = DEFAULT_DB_ALIAS) -> User:
    """
    Load a user with ``user.posts.all()`` and ``post.comments.all()``
    already populated, oldest first.
    """
    queryset = User.objects.using(using).prefetch_related(
        Prefetch('posts', queryset=Post.objects.using(using).order_by('id')),
        Prefetch('posts__comments', queryset=Comment.objects.using(using).order_by('id')),
    )
    try:
        return queryset.get(pk=user_id)
    except User.DoesNotExist as exc:
        raise NotFoundError(f"User {user_id} not found") from exc
    except DatabaseError as exc:
        raise QueryError(f"Could not load posts for user {user_id}: {exc}") from exc


def get_most_commented_post(using: str = DEFAULT_DB_ALIAS) -> Optional[Post]:
    """
    The post with the most comments, annotated with ``comment_count``.

    Returns None when there are no posts at all.
    """
    try:
        return (
            Post.objects.using(using)
            .annotate(comment_count=Count('comments'))
            .order_by('-comment_count', 'id')
            .first()
        )
    except DatabaseError as exc:
        raise QueryError(f"Could not find the most commented post: {exc}") from exc


def list_users(using: str = DEFAULT_DB_ALIAS) -> List[User]:
    try:
        return list(User.objects.using(using).order_by('id'))
    except DatabaseError as exc:
        raise QueryError(f"Could not list users: {exc}") from exc


def list_posts(using: str = DEFAULT_DB_ALIAS) -> List[Post]:
    try:
        return list(Post.objects.using(using).select_related('user').order_by('id'))
    except DatabaseError as exc:
        raise QueryError(f"Could not list posts: {exc}") from exc
