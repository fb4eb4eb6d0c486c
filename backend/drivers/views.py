from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response

from drivers.serializers import (
    DriverLocationSerializer,
    DriverRosterSerializer,
    DriverStatusSerializer,
    LocationHistoryQuerySerializer,
    LocationUpdateSerializer,
)
from rides.serializers import RideSerializer
from common.responses import error_response
from services import ride_management
from services.exceptions import DispatchError

from drivers import services


#    WS is the primary channel for fixes; HTTP fallback remains.
class DriverLocationView(APIView):

    def get(self, request, driver_id):
        query = LocationHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        try:
            if not params:
                current = services.get_current_position(driver_id)
                return Response({"driver_id": driver_id, "current": current})
            history = services.get_position_history(driver_id, **params)
        except DispatchError as exc:
            return error_response(exc)

        return Response(DriverLocationSerializer(history, many=True).data)

    def post(self, request, driver_id):
        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            location = services.record_position(
                driver_id,
                data["point"],
                speed=data.get("speed"),
                heading=data.get("heading"),
                ride_id=data.get("ride_id"),
            )
        except DispatchError as exc:
            return error_response(exc)

        return Response(DriverLocationSerializer(location).data, status=status.HTTP_201_CREATED)


class ActiveDriversView(APIView):

    def get(self, request):
        drivers = services.get_active_drivers()
        return Response(DriverRosterSerializer(drivers, many=True).data)


class DriverStatusView(APIView):

    def put(self, request, driver_id):
        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]

        try:
            services.update_driver_status(driver_id, new_status)
        except DispatchError as exc:
            return error_response(exc)

        return Response({
            "message": f"Status updated to {new_status}",
            "status": new_status
        })


class StartTripView(APIView):

    def post(self, request, driver_id):
        try:
            result = ride_management.start_trip(driver_id)
        except DispatchError as exc:
            return error_response(exc)
        return Response({"message": result.message, "ride": RideSerializer(result.ride).data})


class CompleteTripView(APIView):

    def post(self, request, driver_id):
        try:
            result = ride_management.complete_trip(driver_id)
        except DispatchError as exc:
            return error_response(exc)
        return Response({"message": result.message, "ride": RideSerializer(result.ride).data})


class DriverCurrentRideView(APIView):

    def get(self, request, driver_id):
        try:
            services.get_active_driver(driver_id)
        except DispatchError as exc:
            return error_response(exc)

        ride = ride_management.get_current_driver_ride(driver_id)
        if not ride:
            return Response({"message": "No active ride"}, status=status.HTTP_200_OK)
        return Response(RideSerializer(ride).data)
