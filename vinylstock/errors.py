class InventoryError(Exception):
    """Base for errors shown to the user on the screen that raised them."""


class ValidationError(InventoryError):
    pass


class NotFound(InventoryError):
    pass


class DataAccessError(InventoryError):
    """A query or insert failed in the database; the action is abandoned."""
