"""
Counter maintenance for the blog models.

The hooks below are registered with store.hooks when the app is ready and
run inside the Repository's transaction:

    Post created     -> users.article_count += 1
    Post deleted     -> users.article_count = fresh COUNT(posts)
    Comment created  -> posts.comment_status from fresh COUNT(comments)
    Comment deleted  -> posts.comment_status from fresh COUNT(comments)

comment_status is a threshold on a count, so it is always recomputed from
the comments table rather than tracked with +1/-1. Concurrent deletes of
the last two comments would otherwise leave it stale.

Locking:
--------
Every hook first takes SELECT ... FOR UPDATE on the parent row it is about
to rewrite (the users row for article_count, the posts row for
comment_status). Two transactions touching the same counter therefore run
their recompute one after the other, and the child rows are then read with
a locking read so the recount sees the latest committed state rather than
an older REPEATABLE READ snapshot. On backends without FOR UPDATE (SQLite)
writers are already serialized by the database lock.

A parent row that does not exist is a broken foreign key and raises
ConstraintError, whatever the backend's FK checking mode. Backends that
defer FK checks to COMMIT (SQLite, PostgreSQL) would otherwise let the
write through the repository and fail later at the outer commit.

check_counters() / repair_counters() recount everything from scratch and
are what `manage.py verify_counters` uses.
"""
import logging
from typing import List, NamedTuple

from django.db import transaction
from django.db.models import Count, Exists, F, OuterRef
from django.utils import timezone

from store import hooks
from store.exceptions import ConstraintError

from .models import Comment, Post, User

logger = logging.getLogger(__name__)


def status_for_count(count: int) -> str:
    if count > 0:
        return Post.CommentStatus.HAS_COMMENTS
    return Post.CommentStatus.NO_COMMENTS


def lock_user(user_id, using):
    """Lock the users row. ConstraintError if it does not exist."""
    locked = (
        User.objects.using(using)
        .select_for_update()
        .filter(pk=user_id)
        .values_list('pk', flat=True)
        .first()
    )
    if locked is None:
        raise ConstraintError(f"User {user_id} does not exist")
    return locked


def lock_post(post_id, using):
    """Lock the posts row. ConstraintError if it does not exist."""
    locked = (
        Post.objects.using(using)
        .select_for_update()
        .filter(pk=post_id)
        .values_list('pk', flat=True)
        .first()
    )
    if locked is None:
        raise ConstraintError(f"Post {post_id} does not exist")
    return locked


def increment_article_count(user_id, using):
    lock_user(user_id, using)
    User.objects.using(using).filter(pk=user_id).update(
        article_count=F('article_count') + 1, updated_at=timezone.now()
    )


def refresh_article_count(user_id, using):
    lock_user(user_id, using)
    count = len(
        Post.objects.using(using)
        .select_for_update()
        .filter(user_id=user_id)
        .values_list('pk', flat=True)
    )
    User.objects.using(using).filter(pk=user_id).update(
        article_count=count, updated_at=timezone.now()
    )
    return count


def refresh_comment_status(post_id, using):
    lock_post(post_id, using)
    # one locked row is enough to decide the threshold
    first = (
        Comment.objects.using(using)
        .select_for_update()
        .filter(post_id=post_id)
        .values_list('pk', flat=True)
        .first()
    )
    status = status_for_count(0 if first is None else 1)
    Post.objects.using(using).filter(pk=post_id).update(
        comment_status=status, updated_at=timezone.now()
    )
    return status


@hooks.register(Post, hooks.AFTER_CREATE)
def on_post_created(post, using):
    increment_article_count(post.user_id, using)
    logger.info("User %s article_count incremented", post.user_id)


@hooks.register(Post, hooks.AFTER_DELETE)
def on_post_deleted(post, using):
    count = refresh_article_count(post.user_id, using)
    logger.info("User %s article_count recounted: %d", post.user_id, count)


@hooks.register(Comment, hooks.AFTER_CREATE)
def on_comment_created(comment, using):
    status = refresh_comment_status(comment.post_id, using)
    if not User.objects.using(using).filter(pk=comment.user_id).exists():
        raise ConstraintError(f"User {comment.user_id} does not exist")
    logger.info("Post %s comment_status is now %s", comment.post_id, status)


@hooks.register(Comment, hooks.AFTER_DELETE)
def on_comment_deleted(comment, using):
    status = refresh_comment_status(comment.post_id, using)
    logger.info("Post %s comment_status is now %s", comment.post_id, status)


# ============================================================================
# AUDIT
# ============================================================================

class Mismatch(NamedTuple):
    model: str
    pk: int
    field: str
    stored: object
    expected: object


def check_counters(using) -> List[Mismatch]:
    """Every derived value that disagrees with a fresh recount."""
    mismatches = []

    users = (
        User.objects.using(using)
        .annotate(actual=Count('posts'))
        .exclude(article_count=F('actual'))
        .order_by('pk')
    )
    for user in users:
        mismatches.append(
            Mismatch('User', user.pk, 'article_count', user.article_count, user.actual)
        )

    posts = (
        Post.objects.using(using)
        .annotate(has_comments=Exists(Comment.objects.filter(post_id=OuterRef('pk'))))
        .order_by('pk')
    )
    for post in posts:
        expected = (
            Post.CommentStatus.HAS_COMMENTS if post.has_comments
            else Post.CommentStatus.NO_COMMENTS
        )
        if post.comment_status != expected:
            mismatches.append(
                Mismatch('Post', post.pk, 'comment_status', post.comment_status, str(expected))
            )

    return mismatches


def repair_counters(using) -> List[Mismatch]:
    """Rewrite every stale derived value. Returns what was fixed."""
    with transaction.atomic(using=using):
        mismatches = check_counters(using)
        for mismatch in mismatches:
            if mismatch.model == 'User':
                refresh_article_count(mismatch.pk, using)
            else:
                refresh_comment_status(mismatch.pk, using)
            logger.warning(
                "Repaired %s %s.%s: %s -> %s",
                mismatch.model, mismatch.pk, mismatch.field,
                mismatch.stored, mismatch.expected,
            )
    return mismatches
