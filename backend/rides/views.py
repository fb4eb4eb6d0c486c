from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .serializers import (
    AssignDriverSerializer,
    CancelByPhoneSerializer,
    FareCalculationSerializer,
    NearestDriverQuerySerializer,
    PendingOfferSerializer,
    RideCancelSerializer,
    RideCreateSerializer,
    RideOfferSerializer,
    RideQuoteSerializer,
    RideSerializer,
    RideStatusSerializer,
)

from common.responses import error_response

# Import from services layer
from services import matching, ride_management
from services.exceptions import DispatchError
from services.pricing import calculate_fare_for_client


# ==================== Ride Creation & Quotes ====================

@api_view(['POST'])
def create_ride(request):
    """Create a new ride for a client (geocode, route, price, persist)"""
    serializer = RideCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = ride_management.create_ride(**serializer.validated_data)
    except DispatchError as exc:
        return error_response(exc)

    return Response({
        **RideSerializer(result.ride).data,
        'fare': result.extra['fare'],
        'message': result.message,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
def estimate_ride(request):
    """Quote a ride without creating it"""
    serializer = RideQuoteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        quote = ride_management.estimate_fare(**serializer.validated_data)
    except DispatchError as exc:
        return error_response(exc)

    return Response({'success': True, **quote.as_dict()})


@api_view(['POST'])
def calculate_fare(request):
    """Run the tariff cascade for a client, origin and duration"""
    serializer = FareCalculationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        quote = calculate_fare_for_client(data['client_id'], data['origin_coordinates'], data['duration'])
    except DispatchError as exc:
        return error_response(exc)

    return Response(quote.as_dict())


# ==================== Ride Queries ====================

@api_view(['GET'])
def ride_detail(request, ride_id):
    try:
        ride = ride_management.get_ride(ride_id)
    except DispatchError as exc:
        return error_response(exc)
    return Response(RideSerializer(ride).data)


@api_view(['GET'])
def track_ride(request, tracking_code):
    """Public ride tracking by code (masked contact details)"""
    try:
        info = ride_management.get_public_tracking_info(tracking_code)
    except DispatchError as exc:
        return error_response(exc)
    return Response({'success': True, **info})


# ==================== Cancellation & Status ====================

@api_view(['POST'])
def cancel_ride(request, ride_id):
    serializer = RideCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = ride_management.cancel_ride(ride_id, serializer.validated_data.get('reason', ''))
    except DispatchError as exc:
        return error_response(exc)

    return Response({'message': result.message, 'ride': RideSerializer(result.ride).data})


@api_view(['POST'])
def cancel_ride_by_phone(request):
    """Cancel the active ride of a client identified by phone"""
    serializer = CancelByPhoneSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        result = ride_management.cancel_ride_for_phone(data['phone_number'], data.get('reason', ''))
    except DispatchError as exc:
        return error_response(exc)

    return Response({'message': result.message, 'ride': RideSerializer(result.ride).data})


@api_view(['POST'])
def change_ride_status(request, ride_id):
    """Administrative status change"""
    serializer = RideStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = ride_management.change_status(ride_id, serializer.validated_data['status'])
    except DispatchError as exc:
        return error_response(exc)

    return Response({'message': result.message, 'ride': RideSerializer(result.ride).data})


# ==================== Dispatch ====================

@api_view(['POST'])
def assign_driver(request, ride_id):
    """Operator assigns a driver; the driver still has to accept"""
    serializer = AssignDriverSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = matching.assign_driver(ride_id, serializer.validated_data['driver_id'])
    except DispatchError as exc:
        return error_response(exc)

    return Response({'message': result.message, 'ride': RideSerializer(result.ride).data})


@api_view(['GET', 'POST'])
def ride_offers(request):
    """List pending offers, or offer a ride to a driver"""
    if request.method == 'GET':
        offers = matching.list_pending_offers()
        return Response(PendingOfferSerializer(offers, many=True).data)

    serializer = RideOfferSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        offer = matching.offer_ride(data['driver_id'], data['ride_id'])
    except DispatchError as exc:
        return error_response(exc)

    return Response(PendingOfferSerializer(offer).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
def accept_offer(request):
    """Driver accepts the ride they were offered"""
    serializer = RideOfferSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        result = matching.accept_ride(data['driver_id'], data['ride_id'])
    except DispatchError as exc:
        return error_response(exc)

    return Response({'message': result.message, 'ride': RideSerializer(result.ride).data})


@api_view(['GET'])
def find_nearest_driver(request):
    """Nearest eligible driver for a ride id or a client's pending ride"""
    serializer = NearestDriverQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        if data.get('ride_id'):
            match = matching.find_nearest_driver_for_ride(data['ride_id'])
        else:
            match = matching.find_nearest_driver_for_phone(data['phone'])
    except DispatchError as exc:
        return error_response(exc)

    return Response({'success': True, **match.as_dict()})
