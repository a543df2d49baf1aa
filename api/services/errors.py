"""Expected-outcome exceptions shared by the service layer.

Routes translate these into HTTP responses:
- InputValidationError -> 400
- NotFoundError (and subclasses) -> 404

Storage faults (SQLAlchemyError and friends) are not wrapped; they propagate
to the global exception handler unchanged.
"""


class InputValidationError(Exception):
    """Raised when caller input is malformed or missing required fields."""

    pass


class NotFoundError(Exception):
    """Raised when a referenced entity does not exist."""

    entity = "Resource"

    def __init__(self, entity_id: int, message: str | None = None):
        self.entity_id = entity_id
        super().__init__(message or f"{self.entity} {entity_id} not found")


class ItemNotFoundError(NotFoundError):
    entity = "Pricebook item"


class JobNotFoundError(NotFoundError):
    entity = "Job"


class CustomerNotFoundError(NotFoundError):
    entity = "Customer"


class InvoiceNotFoundError(NotFoundError):
    entity = "Invoice"
