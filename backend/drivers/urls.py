from django.urls import path
from .views import (
    ActiveDriversView,
    CompleteTripView,
    DriverCurrentRideView,
    DriverLocationView,
    DriverStatusView,
    StartTripView,
)

urlpatterns = [
    path("active/", ActiveDriversView.as_view(), name="driver-active"),
    path("<int:driver_id>/location/", DriverLocationView.as_view(), name="driver-location"),
    path("<int:driver_id>/status/", DriverStatusView.as_view(), name="driver-status"),
    path("<int:driver_id>/start-trip/", StartTripView.as_view(), name="driver-start-trip"),
    path("<int:driver_id>/complete-trip/", CompleteTripView.as_view(), name="driver-complete-trip"),
    path("<int:driver_id>/current-ride/", DriverCurrentRideView.as_view(), name="driver-current-ride"),
]
