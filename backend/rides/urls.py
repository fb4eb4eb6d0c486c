from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Creation & quotes
    path('', views.create_ride, name='create-ride'),
    path('estimate/', views.estimate_ride, name='estimate-ride'),
    path('fares/calculate/', views.calculate_fare, name='calculate-fare'),

    # Queries
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),
    path('track/<str:tracking_code>/', views.track_ride, name='track-ride'),

    # Cancellation & status
    path('<int:ride_id>/cancel/', views.cancel_ride, name='cancel-ride'),
    path('cancel-by-phone/', views.cancel_ride_by_phone, name='cancel-by-phone'),
    path('<int:ride_id>/status/', views.change_ride_status, name='change-status'),

    # Dispatch
    path('<int:ride_id>/assign-driver/', views.assign_driver, name='assign-driver'),
    path('offers/', views.ride_offers, name='ride-offers'),
    path('offers/accept/', views.accept_offer, name='accept-offer'),
    path('find-nearest-driver/', views.find_nearest_driver, name='find-nearest-driver'),
]
