"""Capability checks for every ledger operation.

``can`` is the single place where role and ownership rules live. Routers and
services call ``require`` which raises ``PERMISSION_DENIED`` (or the supplied
error) and records the denial.
"""

from __future__ import annotations

from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.teatrade.core.metrics import metrics
from app.teatrade.core.security import ELEVATED_ROLES, ROLE_ADMIN, ROLE_ENFORCE, ROLE_USER

STOCK_READ = "stock.read"
STOCK_WRITE = "stock.write"
STOCK_ADJUST = "stock.adjust"
STOCK_ASSIGN = "stock.assign"
STOCK_IMPORT = "stock.import"
STOCK_FAVORITE = "stock.favorite"
STOCK_HISTORY_READ = "stock.history.read"
ASSIGNMENT_READ = "assignment.read"
SHIPMENT_READ = "shipment.read"
SHIPMENT_CREATE = "shipment.create"
SHIPMENT_UPDATE = "shipment.update"
SHIPMENT_DELETE = "shipment.delete"
SHIPMENT_STATUS_UPDATE = "shipment.status.update"
SHIPMENT_HISTORY_READ = "shipment.history.read"
USER_READ = "user.read"
USER_REGISTER = "user.register"

_ALL_ROLES = frozenset({ROLE_ADMIN, ROLE_USER, ROLE_ENFORCE})
_ADMIN_ONLY = frozenset({ROLE_ADMIN})

# action -> (roles allowed regardless of ownership, roles allowed on own resources)
_RULES: dict[str, tuple[frozenset[str], frozenset[str]]] = {
    STOCK_READ: (_ALL_ROLES, frozenset()),
    STOCK_WRITE: (_ADMIN_ONLY, frozenset()),
    STOCK_ADJUST: (_ADMIN_ONLY, frozenset()),
    STOCK_ASSIGN: (_ADMIN_ONLY, frozenset()),
    STOCK_IMPORT: (_ADMIN_ONLY, frozenset()),
    STOCK_FAVORITE: (frozenset(), _ALL_ROLES),
    STOCK_HISTORY_READ: (_ADMIN_ONLY, _ALL_ROLES),
    ASSIGNMENT_READ: (_ADMIN_ONLY, _ALL_ROLES),
    SHIPMENT_READ: (ELEVATED_ROLES, _ALL_ROLES),
    SHIPMENT_CREATE: (frozenset(), frozenset({ROLE_USER})),
    SHIPMENT_UPDATE: (frozenset(), _ALL_ROLES),
    SHIPMENT_DELETE: (ELEVATED_ROLES, _ALL_ROLES),
    SHIPMENT_STATUS_UPDATE: (ELEVATED_ROLES, frozenset()),
    SHIPMENT_HISTORY_READ: (ELEVATED_ROLES, _ALL_ROLES),
    USER_READ: (_ADMIN_ONLY, _ALL_ROLES),
    USER_REGISTER: (_ADMIN_ONLY, _ALL_ROLES),
}


def can(actor: RequestContext, action: str, owner_id: str | None = None) -> bool:
    rule = _RULES.get(action)
    if rule is None:
        return False
    any_resource, own_resource = rule
    if actor.role in any_resource:
        return True
    return actor.role in own_resource and actor.owns(owner_id)


def require(
    actor: RequestContext,
    action: str,
    owner_id: str | None = None,
    *,
    error: ErrorDefinition = ErrorCatalog.PERMISSION_DENIED,
) -> None:
    if can(actor, action, owner_id):
        return
    metrics.increment_rbac_denied(action)
    raise AppError(error, details={"action": action, "role": actor.role})
