class BookingError(Exception):
    """Base for errors the booking core reports back to the caller."""

    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        out = {"error": self.message}
        out.update(self.details)
        return out


class ValidationError(BookingError):
    status_code = 400


class SlotConflictError(BookingError):
    status_code = 409


class StoreError(BookingError):
    status_code = 500


class PaymentProviderError(BookingError):
    status_code = 502
