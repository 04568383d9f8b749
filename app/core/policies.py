"""
Row-level access policies for the notifications table.

Policies are plain data: each one names the operation kind it governs and
a predicate over (caller_id, row). An operation is allowed when ANY policy
for its kind holds. Evaluation is pure; callers run it immediately before
touching storage, inside the same transaction.

A caller_id of None is the trusted system path (background jobs, other
services in-process). Only predicates that ignore the caller admit it.
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from app.core.exceptions import AccessDeniedError

logger = logging.getLogger(__name__)

CallerId = Optional[uuid.UUID]
Row = Union[Mapping[str, Any], Any]


class Operation(str, enum.Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Policy:
    name: str
    operation: Operation
    predicate: Callable[[CallerId, Row], bool]

    def applies(self, caller_id: CallerId, row: Row) -> bool:
        return bool(self.predicate(caller_id, row))


def _row_value(row: Row, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def is_owner(caller_id: CallerId, row: Row) -> bool:
    if caller_id is None:
        return False
    owner = _as_uuid(_row_value(row, "user_id"))
    return owner is not None and owner == _as_uuid(caller_id)


def always(caller_id: CallerId, row: Row) -> bool:
    return True


NOTIFICATION_POLICIES: Tuple[Policy, ...] = (
    Policy("Users can read own notifications", Operation.SELECT, is_owner),
    Policy("Users can insert own notifications", Operation.INSERT, is_owner),
    Policy("Users can update own notifications", Operation.UPDATE, is_owner),
    Policy("Users can delete own notifications", Operation.DELETE, is_owner),
    # Cross-user delivery: anyone may address a notification to anyone.
    Policy("System can insert notifications for any user", Operation.INSERT, always),
)


def policies_for(operation: Operation, policies: Tuple[Policy, ...] = NOTIFICATION_POLICIES) -> Tuple[Policy, ...]:
    return tuple(p for p in policies if p.operation == Operation(operation))


def granting_policy(
    operation: Operation,
    caller_id: CallerId,
    row: Row,
    policies: Tuple[Policy, ...] = NOTIFICATION_POLICIES,
) -> Optional[Policy]:
    """First policy (in declaration order) that admits the operation, if any."""
    for policy in policies_for(operation, policies):
        if policy.applies(caller_id, row):
            return policy
    return None


def is_allowed(
    operation: Operation,
    caller_id: CallerId,
    row: Row,
    policies: Tuple[Policy, ...] = NOTIFICATION_POLICIES,
) -> bool:
    return granting_policy(operation, caller_id, row, policies) is not None


def enforce(
    operation: Operation,
    caller_id: CallerId,
    row: Row,
    policies: Tuple[Policy, ...] = NOTIFICATION_POLICIES,
    message: str = "Access denied",
) -> Policy:
    """Return the granting policy or raise AccessDeniedError."""
    policy = granting_policy(operation, caller_id, row, policies)
    if policy is None:
        logger.info(
            f"Policy denied {Operation(operation).value}",
            extra={"caller_id": str(caller_id) if caller_id else None, "row_id": str(_row_value(row, "id"))},
        )
        raise AccessDeniedError(message)
    return policy
