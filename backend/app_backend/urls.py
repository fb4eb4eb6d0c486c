from django.urls import path, include

from .views import health_check

urlpatterns = [
    path("health/", health_check),

    # Drivers: positions, roster, status
    path('api/driver/', include('drivers.urls')),

    # Rides: creation, quotes, tracking, dispatch
    path('api/rides/', include('rides.urls')),
]
