# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "MANAGE_CATALOG",
        "Manage Catalog",
        "Create, edit and delete books and categories",
        PermissionCategory.CATALOG,
    ),
]


# -- SHOPPING --

SHOPPING_PERMISSIONS = [
    (
        "MANAGE_OWN_CART",
        "Manage Own Cart",
        "Add, change and remove items in own cart and wishlist",
        PermissionCategory.SHOPPING,
    ),
    (
        "PLACE_ORDER",
        "Place Order",
        "Check out own cart into an order",
        PermissionCategory.SHOPPING,
    ),
    (
        "VIEW_OWN_ORDERS",
        "View Own Orders",
        "List and view own orders",
        PermissionCategory.SHOPPING,
    ),
    (
        "CANCEL_OWN_ORDER",
        "Cancel Own Order",
        "Cancel own order while PENDING or PROCESSING",
        PermissionCategory.SHOPPING,
    ),
]


# -- ORDERS --

ORDER_PERMISSIONS = [
    (
        "VIEW_ALL_ORDERS",
        "View All Orders",
        "List and view orders of every customer",
        PermissionCategory.ORDERS,
    ),
    (
        "UPDATE_ORDER_STATUS",
        "Update Order Status",
        "Move orders through the fulfillment lifecycle",
        PermissionCategory.ORDERS,
    ),
    (
        "CANCEL_ANY_ORDER",
        "Cancel Any Order",
        "Cancel any customer's order while still cancellable",
        PermissionCategory.ORDERS,
    ),
]


# -- PAYMENTS --

PAYMENT_PERMISSIONS = [
    (
        "MANAGE_PAYMENTS",
        "Manage Payments",
        "Mark order payments as completed or failed",
        PermissionCategory.PAYMENTS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View inventory logs and low-stock reports",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Restock and correct book stock through the inventory ledger",
        PermissionCategory.INVENTORY,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View order statistics and the admin dashboard",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and deactivate user accounts",
        PermissionCategory.USERS,
    ),
]


# Combined list of all capabilities
PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + SHOPPING_PERMISSIONS
    + ORDER_PERMISSIONS
    + PAYMENT_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
)
