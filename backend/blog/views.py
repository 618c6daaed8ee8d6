"""
DRF Views for the blog demo
===========================

Every write goes through store.repository.Repository, never through
Model.save() or a ModelSerializer.save(), so the counter hooks always run
in the same transaction as the write.

Errors raised by the repository / queries (NotFoundError,
ConstraintError, ValueError) are turned into responses by
store.exceptions.custom_exception_handler.
"""

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from store.exceptions import NotFoundError
from store.repository import Repository

from .models import Comment, Post, User
from .queries import get_most_commented_post, get_user_with_posts_and_comments
from .serializers import (
    CommentCreateSerializer,
    CommentSerializer,
    MostCommentedPostSerializer,
    PostCreateSerializer,
    PostSerializer,
    UserSerializer,
    UserSubtreeSerializer,
)


class UserListView(generics.ListAPIView):
    """
    GET /api/users/

    Users with their article_count.
    """
    serializer_class = UserSerializer
    permission_classes = [permissions.AllowAny]
    queryset = User.objects.order_by('id')


class UserDetailView(APIView):
    """
    GET /api/users/<id>/

    User with all posts and all comments on those posts. 3 queries.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        user = get_user_with_posts_and_comments(user_id)
        return Response(UserSubtreeSerializer(user).data)


class PostListCreateView(APIView):
    """
    GET  /api/posts/
    POST /api/posts/   {"title": ..., "content": ..., "user": <id>}

    Creating a post increments the owner's article_count atomically. An
    unknown owner is a broken reference (409), not a missing resource.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        posts = Post.objects.order_by('id')
        return Response(PostSerializer(posts, many=True).data)

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        repo = Repository()
        data = serializer.validated_data
        post = Post(title=data['title'], content=data['content'], user_id=data['user'])
        repo.create(post)

        return Response(
            PostSerializer(repo.find_by_id(Post, post.pk)).data,
            status=status.HTTP_201_CREATED
        )


class MostCommentedPostView(APIView):
    """
    GET /api/posts/most-commented/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        post = get_most_commented_post()
        if post is None:
            raise NotFoundError("No posts")
        return Response(MostCommentedPostSerializer(post).data)


class CommentCreateView(APIView):
    """
    POST /api/posts/<post_id>/comments/   {"content": ..., "user": <id>}
    """
    permission_classes = [permissions.AllowAny]

    def post(self, request, post_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        repo = Repository()
        data = serializer.validated_data
        repo.find_by_id(Post, post_id)
        comment = Comment(content=data['content'], post_id=post_id, user_id=data['user'])
        repo.create(comment)

        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    """
    DELETE /api/comments/<comment_id>/

    Recomputes the post's comment_status in the same transaction.
    """
    permission_classes = [permissions.AllowAny]

    def delete(self, request, comment_id):
        Repository().delete(Comment, comment_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
