class DomainError(Exception):
    """Base class for booking failures surfaced to callers."""


class NotFoundError(DomainError):
    pass


class RequesterNotFoundError(NotFoundError):
    pass


class SlotNotFoundError(NotFoundError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class NoCapacityError(DomainError):
    """Slot was already fully booked when the lock was taken."""


class ResourceBusyError(DomainError):
    """Gave up waiting for a row lock held by another transaction."""


class NotReservationOwnerError(DomainError):
    pass


class InvalidReservationStateError(DomainError):
    pass


class CapacityInvariantError(DomainError):
    """Counter guard tripped; the slot row and its reservations disagree."""


class CapacityExceededError(CapacityInvariantError):
    pass


class CapacityUnderflowError(CapacityInvariantError):
    pass
