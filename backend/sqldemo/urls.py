"""
sqldemo URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'sqldemo API Server',
        'version': '1.0',
        'endpoints': {
            'users': '/api/users/',
            'user_subtree': '/api/users/<id>/',
            'posts': '/api/posts/',
            'most_commented': '/api/posts/most-commented/',
            'comments': '/api/posts/<id>/comments/',
            'employees': '/api/employees/?department=<name>',
            'top_earners': '/api/employees/top/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('blog.urls')),
    path('api/', include('company.urls')),
]
