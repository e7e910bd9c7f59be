from booking_api.schemas.common import ApiResponse, Pagination
from booking_api.schemas.user import UserSummary
from booking_api.schemas.event import (
    EventCreate, EventUpdate, EventResponse, EventDetailResponse, EventSummary, EventData,
    EventStats, EventStatsData, EventCancelData,
)
from booking_api.schemas.booking import (
    BookingCreate, BookingStatusUpdate, BookingResponse, BookingData, BookingListData,
    BookingStats, BookingStatsData,
)

__all__ = [
    "ApiResponse", "Pagination", "UserSummary",
    "EventCreate", "EventUpdate", "EventResponse", "EventDetailResponse", "EventSummary",
    "EventData", "EventStats", "EventStatsData", "EventCancelData",
    "BookingCreate", "BookingStatusUpdate", "BookingResponse", "BookingData", "BookingListData",
    "BookingStats", "BookingStatsData",
]
