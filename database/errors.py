class StoreError(Exception):
    """Base class for recoverable store errors surfaced to the caller."""


class ValidationError(StoreError):
    """Empty or invalid caller-supplied value (deck name, path, mode, card type)."""


class NotFoundError(StoreError):
    """A deck, card, scheduling row or session id is not in the store."""


class CycleError(StoreError):
    """A deck move would make a deck its own ancestor."""
