from sqlalchemy import event

from .catalog import Product
from .orders import Order, OrderItem, OrderHistoryEntry
from .inventory import InventoryLogEntry
from .auth import User, UserSession, PasswordHistoryEntry
from .security import LoginAttempt, SecurityLogEntry

__all__ = [
    'Product',
    'Order', 'OrderItem', 'OrderHistoryEntry',
    'InventoryLogEntry',
    'User', 'UserSession', 'PasswordHistoryEntry',
    'LoginAttempt', 'SecurityLogEntry',
    'APPEND_ONLY_MODELS', 'AppendOnlyViolation',
]


class AppendOnlyViolation(RuntimeError):
    """Raised when code tries to UPDATE or DELETE an audit row through the ORM."""


# Audit tables. Retention sweeps use bulk DELETE statements, which bypass these hooks.
APPEND_ONLY_MODELS = (
    InventoryLogEntry,
    OrderHistoryEntry,
    LoginAttempt,
    PasswordHistoryEntry,
    SecurityLogEntry,
)


def _reject_update(mapper, connection, target):
    raise AppendOnlyViolation(f"{type(target).__name__} rows are append-only and cannot be updated")


def _reject_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"{type(target).__name__} rows are append-only and cannot be deleted")


for _model in APPEND_ONLY_MODELS:
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)
