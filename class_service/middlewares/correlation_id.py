from starlette.middleware.base import BaseHTTPMiddleware

from class_service.utils.correlation_id import (
    CORRELATION_ID_HEADER,
    create_correlation_id,
    extract_correlation_id_from_headers,
    set_correlation_id,
)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract or generate correlation IDs for requests.
    The ID is stored in the context and echoed back in the response headers.
    """

    async def dispatch(self, request, call_next):
        correlation_id = extract_correlation_id_from_headers(
            dict(request.headers)
        ) or create_correlation_id()

        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id

        return response
