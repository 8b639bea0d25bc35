"""Translate booking service errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from rentals_api.services.errors import BookingError

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "lead_time": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "dependency": status.HTTP_502_BAD_GATEWAY,
    "integrity": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(exc: BookingError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("Booking request failed (%s): %s", exc.kind, exc.message)
    return HTTPException(status_code=status_code, detail=exc.to_detail())
