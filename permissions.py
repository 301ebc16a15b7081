"""Single capability check used before every state-changing operation."""
import enum
import logging
from typing import Any, Dict, FrozenSet, Optional

from exceptions import PermissionDeniedError
from schemas.UserSchemas import Actor, UserRole

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    ITEM_CREATE = "item:create"
    ITEM_UPDATE = "item:update"
    ITEM_DELETE = "item:delete"
    STOCK_ADJUST = "stock:adjust"
    MASTER_DATA_MANAGE = "master_data:manage"
    GOOD_OUT_CREATE = "good_out:create"
    GOOD_OUT_APPROVE = "good_out:approve"
    GOOD_OUT_REJECT = "good_out:reject"
    GOOD_OUT_CANCEL = "good_out:cancel"
    GOOD_OUT_READ = "good_out:read"
    GOOD_OUT_READ_ALL = "good_out:read_all"
    GOOD_OUT_PENDING_COUNT = "good_out:pending_count"
    REPORT_READ = "report:read"


ELEVATED: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.MANAGER})

ROLE_GRANTS: Dict[Action, FrozenSet[UserRole]] = {
    Action.ITEM_CREATE: ELEVATED,
    Action.ITEM_UPDATE: ELEVATED,
    Action.ITEM_DELETE: ELEVATED,
    Action.STOCK_ADJUST: ELEVATED,
    Action.MASTER_DATA_MANAGE: ELEVATED,
    Action.GOOD_OUT_CREATE: frozenset({UserRole.TEKNISI}),
    Action.GOOD_OUT_APPROVE: ELEVATED,
    Action.GOOD_OUT_REJECT: ELEVATED,
    Action.GOOD_OUT_READ_ALL: ELEVATED,
    Action.GOOD_OUT_PENDING_COUNT: ELEVATED,
    Action.REPORT_READ: ELEVATED,
}


def _is_requester(actor: Actor, resource: Any) -> bool:
    return resource is not None and getattr(resource, "requested_by", None) == actor.id


def can(actor: Optional[Actor], action: Action, resource: Any = None) -> bool:
    if actor is None:
        return False

    if action == Action.GOOD_OUT_CANCEL:
        return _is_requester(actor, resource)

    if action == Action.GOOD_OUT_READ:
        return actor.role in ELEVATED or _is_requester(actor, resource)

    return actor.role in ROLE_GRANTS.get(action, frozenset())


def authorize(actor: Optional[Actor], action: Action, resource: Any = None) -> None:
    if not can(actor, action, resource):
        role = actor.role.value if actor else None
        logger.info("Denied %s for actor=%s role=%s", action.value, actor.id if actor else None, role)
        raise PermissionDeniedError(f"Access denied for {action.value}")
