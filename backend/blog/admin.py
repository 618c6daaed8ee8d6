"""
Django Admin Configuration for Blog Models
"""
from django.contrib import admin
from .models import User, Post, Comment


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'article_count', 'created_at']
    search_fields = ['name', 'email']
    readonly_fields = ['article_count', 'created_at', 'updated_at']
    exclude = ['password']

    def has_add_permission(self, request):
        # No password field here, so added users could never log in
        return False


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'comment_status', 'created_at']
    list_filter = ['comment_status', 'created_at']
    search_fields = ['title', 'content', 'user__name']
    readonly_fields = ['user', 'comment_status', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        # Admin saves bypass the Repository and its counter hooks
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'user', 'created_at']
    search_fields = ['content', 'user__name']
    readonly_fields = ['post', 'user', 'created_at', 'updated_at']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
