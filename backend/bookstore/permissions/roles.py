# Overview: Role -> capability table. The only place that decides what a role may do.

from ..models.auth import ROLE_CUSTOMER, ROLE_STAFF, ROLE_ADMIN
from .helpers import get_all_permission_codes


DEFAULT_ROLE_PERMISSIONS = {
    ROLE_CUSTOMER: [
        "MANAGE_OWN_CART",
        "PLACE_ORDER",
        "VIEW_OWN_ORDERS",
        "CANCEL_OWN_ORDER",
    ],
    ROLE_STAFF: [
        "VIEW_ALL_ORDERS",
        "UPDATE_ORDER_STATUS",
        "CANCEL_ANY_ORDER",
        "MANAGE_PAYMENTS",
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "VIEW_REPORTS",
    ],
    # Admin has ALL capabilities
    ROLE_ADMIN: get_all_permission_codes(),
}
