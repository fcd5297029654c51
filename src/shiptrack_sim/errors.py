"""
Error taxonomy for shipment operations.

Validation errors are raised before any state is touched. Transition errors
leave the shipment unchanged. Both are safe for the caller to handle and retry.
"""


class ShipmentError(Exception):
    """Base class for all shipment errors."""


class ValidationError(ShipmentError, ValueError):
    """Rejected input. Nothing was mutated."""


class MissingFieldError(ValidationError):
    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class InvalidCityError(ValidationError):
    def __init__(self, city: str, role: str = "city") -> None:
        self.city = city
        self.role = role
        super().__init__(f"Invalid {role}: {city}")


class SameOriginDestinationError(ValidationError):
    def __init__(self, city: str) -> None:
        self.city = city
        super().__init__(f"Origin and destination must be different (got {city})")


class InvalidPriorityError(ValidationError):
    def __init__(self, priority: object) -> None:
        self.priority = priority
        super().__init__(f"Invalid priority: {priority!r}")


class InvalidWeightError(ValidationError):
    def __init__(self, weight: object) -> None:
        self.weight = weight
        super().__init__(f"Weight must be a positive number of kg, got {weight!r}")


class TransitionError(ShipmentError):
    """Requested status change is not allowed from the current status."""


class InvalidTransitionError(TransitionError):
    pass


class AlreadyCancelledError(TransitionError):
    pass


class ShipmentNotFoundError(ShipmentError, KeyError):
    def __init__(self, shipment_id: str) -> None:
        self.shipment_id = shipment_id
        super().__init__(f"Shipment {shipment_id} not found")

    def __str__(self) -> str:
        return str(self.args[0])
