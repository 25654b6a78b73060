# File: parksystem/application/capabilities.py
"""
Role gating for operator actions.

The engine has no notion of roles; the application service asks this module
before invoking an engine operation on behalf of the current role.
"""

from enum import Enum
from typing import Dict, FrozenSet

from ..domain.models import UserRole


class Action(str, Enum):
    REGISTER_ENTRY = "register_entry"
    REGISTER_EXIT = "register_exit"
    BLOCK_SPACE = "block_space"
    RESERVE_SPACE = "reserve_space"
    MANAGE_SUBSCRIPTIONS = "manage_subscriptions"
    PAY_SUBSCRIPTION = "pay_subscription"
    UPDATE_CONFIG = "update_config"
    VIEW_REPORTS = "view_reports"
    EXPORT_DATA = "export_data"


CAPABILITIES: Dict[UserRole, FrozenSet[Action]] = {
    UserRole.ADMIN: frozenset(Action),
    UserRole.CASHIER: frozenset({
        Action.REGISTER_ENTRY,
        Action.REGISTER_EXIT,
        Action.RESERVE_SPACE,
        Action.PAY_SUBSCRIPTION,
        Action.VIEW_REPORTS,
    }),
}


def can(role: UserRole, action: Action) -> bool:
    return action in CAPABILITIES.get(UserRole(role), frozenset())
