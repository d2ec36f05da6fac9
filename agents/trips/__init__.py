"""Trips Agent - Trip lifecycle, booking uploads and activities."""

from .handler import (
    create_trip_handler,
    add_booking_handler,
    get_trip_handler,
    list_trips_handler,
    get_timeline_handler,
    rename_trip_handler,
    delete_trip_handler,
    delete_passenger_handler,
    delete_booking_handler,
    create_activity_handler,
    update_activity_handler,
    delete_activity_handler,
    get_attachment_url_handler,
)

__all__ = [
    'create_trip_handler',
    'add_booking_handler',
    'get_trip_handler',
    'list_trips_handler',
    'get_timeline_handler',
    'rename_trip_handler',
    'delete_trip_handler',
    'delete_passenger_handler',
    'delete_booking_handler',
    'create_activity_handler',
    'update_activity_handler',
    'delete_activity_handler',
    'get_attachment_url_handler',
]
