from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Auth, profile, user management, dashboard stats ---
    path('api/', include('users.urls')),

    # --- Attempt flow (before the test router so 'tests/attempts/' is not read as a test id) ---
    path('api/', include('attempts.urls')),

    # --- Test catalogue and authoring ---
    path('api/', include('mocktests.urls')),

    # --- Platform settings and audit trail ---
    path('api/admin/', include('cores.urls')),
]
