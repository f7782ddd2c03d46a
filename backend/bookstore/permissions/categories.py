# Overview: Capability category constants for grouping related capabilities.


class PermissionCategory:
    """Capability categories for organization and admin display."""
    CATALOG = "CATALOG"
    SHOPPING = "SHOPPING"
    ORDERS = "ORDERS"
    PAYMENTS = "PAYMENTS"
    INVENTORY = "INVENTORY"
    REPORTS = "REPORTS"
    USERS = "USERS"
