from rest_framework import serializers

from common.utils import InvalidCoordinatesError, parse_wkt_point, validate_coordinates


def resolve_point(attrs, latitude_key="latitude", longitude_key="longitude", wkt_key="coordinates", required=True):
    """
    Turn either a latitude/longitude pair or a WKT string from validated data
    into a GeoPoint. Returns None when nothing was given and not required.

    Validation errors are keyed by the request's own field names.
    """
    latitude = attrs.pop(latitude_key, None)
    longitude = attrs.pop(longitude_key, None)
    wkt = attrs.pop(wkt_key, None)

    field_names = {"latitude": latitude_key, "longitude": longitude_key, "coordinates": wkt_key}
    try:
        if wkt:
            return parse_wkt_point(wkt)
        if latitude is not None and longitude is not None:
            return validate_coordinates(longitude, latitude)
    except InvalidCoordinatesError as exc:
        field = wkt_key if wkt else None
        raise serializers.ValidationError(
            {field or field_names.get(key, key): message for key, message in exc.errors.items()}
        )

    if latitude is not None or longitude is not None:
        missing = longitude_key if longitude is None else latitude_key
        raise serializers.ValidationError({missing: "This field is required with the other coordinate."})
    if required:
        raise serializers.ValidationError({
            wkt_key: f"Provide {wkt_key} as POINT(<lon> <lat>) or {latitude_key}/{longitude_key}."
        })
    return None
