from rest_framework.response import Response

from services.exceptions import DispatchError


def error_response(exc: DispatchError) -> Response:
    """Render a service error as ``{success, error, message, errors}``."""
    return Response(
        {
            'success': False,
            'error': exc.code,
            'message': exc.message,
            'errors': exc.errors,
        },
        status=exc.status_code,
    )
