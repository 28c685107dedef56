"""
Service-layer exceptions

Routes translate these into HTTP responses:
- ValueError -> 400
- NotFoundError -> 404
- InvalidStateTransition -> 409
"""


class NotFoundError(LookupError):
    """Requested entity does not exist."""

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidStateTransition(Exception):
    """Entity is not in a status that allows the requested operation."""

    def __init__(self, entity: str, current_status: str, operation: str):
        self.entity = entity
        self.current_status = current_status
        self.operation = operation
        super().__init__(f"Cannot {operation} {entity} in status '{current_status}'")
