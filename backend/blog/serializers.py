"""
DRF Serializers for the blog models.

Derived fields (article_count, comment_status) are always read-only. The
create serializers only validate input; the views hand the unsaved
instance to the Repository so the counter hooks run.
"""

from rest_framework import serializers

from .models import Comment, Post, User


class UserSerializer(serializers.ModelSerializer):

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'article_count', 'created_at']
        read_only_fields = fields


class CommentSerializer(serializers.ModelSerializer):

    class Meta:
        model = Comment
        fields = ['id', 'content', 'post', 'user', 'created_at']
        read_only_fields = fields


class PostSerializer(serializers.ModelSerializer):

    class Meta:
        model = Post
        fields = ['id', 'title', 'content', 'comment_status', 'user', 'created_at']
        read_only_fields = fields


class PostWithCommentsSerializer(PostSerializer):
    comments = CommentSerializer(many=True, read_only=True)

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ['comments']
        read_only_fields = fields


class UserSubtreeSerializer(UserSerializer):
    """User -> posts -> comments, from a prefetched instance."""
    posts = PostWithCommentsSerializer(many=True, read_only=True)

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['posts']
        read_only_fields = fields


class MostCommentedPostSerializer(PostSerializer):
    comment_count = serializers.IntegerField(read_only=True)

    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ['comment_count']
        read_only_fields = fields


class PostCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    content = serializers.CharField()
    user = serializers.IntegerField(min_value=1)

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Title cannot be empty.")
        return value.strip()


class CommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField()
    user = serializers.IntegerField(min_value=1)

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value.strip()
