"""
Data Models for the blog demo
=============================

Three entities: User -> Post -> Comment.

Denormalized fields:
--------------------
- User.article_count: number of Posts owned by the user.
- Post.comment_status: HasComments / NoComments.

Both are listed in DERIVED_FIELDS and are written ONLY by the hooks in
blog/counters.py, which the Repository runs inside the same transaction as
the Post/Comment insert or delete. Never assign them directly.

Deletion:
---------
Every foreign key is PROTECT. Deleting a User that still owns Posts, or a
Post that still has Comments, is refused by the database layer instead of
cascading.

This User is the blog author, not django.contrib.auth's User.
"""

from django.contrib.auth.hashers import check_password, make_password
from django.db import models


class User(models.Model):
    name = models.CharField(max_length=100, unique=True)
    email = models.EmailField(max_length=100, unique=True)
    password = models.CharField(max_length=255)

    article_count = models.PositiveIntegerField(default=0, editable=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    DERIVED_FIELDS = ('article_count',)

    class Meta:
        db_table = 'users'
        ordering = ['id']

    def __str__(self):
        return self.name

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)


class Post(models.Model):

    class CommentStatus(models.TextChoices):
        NO_COMMENTS = 'NoComments', 'No comments'
        HAS_COMMENTS = 'HasComments', 'Has comments'

    title = models.CharField(max_length=200)
    content = models.TextField()
    comment_status = models.CharField(
        max_length=20,
        choices=CommentStatus.choices,
        default=CommentStatus.NO_COMMENTS,
        editable=False,
    )
    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='posts',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    DERIVED_FIELDS = ('comment_status',)

    class Meta:
        db_table = 'posts'
        ordering = ['id']

    def __str__(self):
        return self.title[:50]


class Comment(models.Model):
    content = models.TextField()
    post = models.ForeignKey(
        Post,
        on_delete=models.PROTECT,
        related_name='comments',
    )
    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='comments',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'comments'
        ordering = ['id']
        indexes = [
            # Every status recompute is a COUNT(*) WHERE post_id = ?
            models.Index(fields=['post', 'id'], name='comments_post_id_idx'),
        ]

    def __str__(self):
        return f"Comment {self.pk} on post {self.post_id}"
