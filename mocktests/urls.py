from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import MockTestViewSet, AdminMockTestViewSet, CategoryViewSet

router = DefaultRouter()
router.register(r'tests', MockTestViewSet, basename='tests')
router.register(r'admin/tests', AdminMockTestViewSet, basename='admin-tests')
router.register(r'admin/categories', CategoryViewSet, basename='admin-categories')

urlpatterns = [
    path('', include(router.urls)),
]
