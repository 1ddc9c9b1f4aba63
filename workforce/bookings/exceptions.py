class BookingError(Exception):
    """Base class for booking workflow errors."""


class BookingNotFoundError(BookingError):
    pass


class BookingStateError(BookingError):
    """The booking's current status does not allow the requested transition."""


class BookingValidationError(BookingError):
    pass


class EventInstanceNotFoundError(BookingError):
    pass
