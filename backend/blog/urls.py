"""
Blog App URL Configuration
"""
from django.urls import path
from .views import (
    UserListView,
    UserDetailView,
    PostListCreateView,
    MostCommentedPostView,
    CommentCreateView,
    CommentDetailView,
)

urlpatterns = [
    # Users
    path('users/', UserListView.as_view(), name='user-list'),
    path('users/<int:user_id>/', UserDetailView.as_view(), name='user-detail'),

    # Posts
    path('posts/', PostListCreateView.as_view(), name='post-list'),
    path('posts/most-commented/', MostCommentedPostView.as_view(), name='post-most-commented'),
    path('posts/<int:post_id>/comments/', CommentCreateView.as_view(), name='comment-create'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),
]
