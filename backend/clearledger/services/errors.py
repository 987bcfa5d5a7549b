"""Domain exceptions raised by the service layer."""


class NotFoundError(ValueError):
    """A referenced record does not exist."""


class MappingError(ValueError):
    """The column mapping cannot drive an import. Fatal for the batch."""


class SplitImbalanceError(ValueError):
    """A split set does not balance to zero cents."""


class RowTransformError(ValueError):
    """A single input row could not be converted to a canonical record."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class StatementLockedError(ValueError):
    """The statement is reconciled and must be un-reconciled before changes."""


class StateConflictError(ValueError):
    """The record is not in a state that allows the requested change."""


class UnsupportedStoreError(ValueError):
    """The database cannot do insert-if-absent. Fatal for the batch."""
