"""
Static table ordering for the storefront reset/reseed pipeline.

Both orders are hand-maintained configuration, not computed from the
schema. Adding a table or a foreign key means updating DELETION_ORDER,
INSERTION_ORDER and FOREIGN_KEYS together; tests/test_table_order.py
checks they still agree.

Deletion:  children before parents (a row is gone before the row it points at).
Insertion: parents before children.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

DELETION_ORDER: tuple[str, ...] = (
    # Leaf tables holding foreign keys
    "variantAttributes",  # productVariations, attributes, attributeValues
    "orderItems",  # orders, products, productVariations
    "productAttributes",  # products, attributes, attributeValues
    "productAlternateImages",  # products
    "productVariations",  # products
    "reviews",  # users
    "refunds",  # orders, users
    "cartEvents",  # products
    "cartsRecovered",  # cartSessions
    "campaignEmails",
    "paymentTransactionLogs",  # paymentSettings
    "paymentGatewayHealthChecks",  # paymentSettings
    "pageRevisions",  # pages, users
    "pageCategoryRelations",
    "pageAnalytics",  # pages
    # Referenced by the leaves above, referencing the roots below
    "orders",  # addresses, users, shippingMethods, taxRates
    "products",
    "attributeValues",  # attributes
    # Referencing users at most
    "cartSessions",  # users
    "coupons",  # users
    "discounts",
    "addresses",  # users
    "userProfiles",  # users
    "sessions",  # users
    "accounts",  # users
    "verificationTokens",
    "customers",
    "categories",
    "brands",
    "attributes",
    "taxonomy",
    "shippingMethods",
    "taxRates",
    "paymentGateways",
    "paymentSettings",  # users
    "apiIntegrations",
    "adminUsers",
    "mainBanners",
    "mini_banners",
    "pages",
    "pageCategories",
    "cartAbandonmentToggle",  # users
    "dataModeSettings",
    "settings",  # protected: the delete endpoint skips it
    "users",
)

INSERTION_ORDER: tuple[str, ...] = (
    "users",
    "categories",
    "taxonomy",
    "brands",
    "settings",
    "taxRates",
    "shippingMethods",
    "adminUsers",
    "apiIntegrations",
    "paymentGateways",
    "paymentSettings",  # users
    "dataModeSettings",
    "mainBanners",
    "mini_banners",
    "pages",
    "pageCategories",
    "cartAbandonmentToggle",  # users
    "customers",
    "verificationTokens",
    "accounts",
    "sessions",
    "userProfiles",
    "addresses",  # users
    "coupons",  # users
    "discounts",
    "attributes",
    "attributeValues",
    "products",
    "orders",
    "productVariations",
    "productAttributes",
    "productAlternateImages",
    "variantAttributes",
    "orderItems",
    "reviews",
    "refunds",
    "cartSessions",  # users
    "cartEvents",
    "cartsRecovered",
    "campaignEmails",
    "paymentTransactionLogs",
    "paymentGatewayHealthChecks",
    "pageRevisions",
    "pageCategoryRelations",
    "pageAnalytics",
)

# (child, parent): child holds a foreign key referencing parent. Mirrors
# the .references() declarations in the storefront schema; the
# page_category_relations keys are commented out there and absent here.
FOREIGN_KEYS: tuple[tuple[str, str], ...] = (
    ("accounts", "users"),
    ("sessions", "users"),
    ("userProfiles", "users"),
    ("addresses", "users"),
    ("reviews", "users"),
    ("productVariations", "products"),
    ("productAlternateImages", "products"),
    ("productAttributes", "products"),
    ("productAttributes", "attributes"),
    ("productAttributes", "attributeValues"),
    ("variantAttributes", "productVariations"),
    ("variantAttributes", "attributes"),
    ("variantAttributes", "attributeValues"),
    ("attributeValues", "attributes"),
    ("orders", "users"),
    ("orders", "taxRates"),
    ("orders", "addresses"),
    ("orders", "shippingMethods"),
    ("orderItems", "orders"),
    ("orderItems", "products"),
    ("orderItems", "productVariations"),
    ("refunds", "orders"),
    ("refunds", "users"),
    ("coupons", "users"),
    ("paymentSettings", "users"),
    ("paymentTransactionLogs", "paymentSettings"),
    ("paymentGatewayHealthChecks", "paymentSettings"),
    ("pageRevisions", "pages"),
    ("pageRevisions", "users"),
    ("pageAnalytics", "pages"),
    ("cartAbandonmentToggle", "users"),
    ("cartSessions", "users"),
    ("cartEvents", "products"),
    ("cartsRecovered", "cartSessions"),
)

# Seed bundle file for each table. Names follow the export tool, which
# is why the health-check table ships as gateway_monitoring_logs.json.
SEED_FILES: dict[str, str] = {
    "users": "users.json",
    "categories": "categories.json",
    "taxonomy": "taxonomy.json",
    "brands": "brands.json",
    "settings": "settings.json",
    "taxRates": "tax_rates.json",
    "shippingMethods": "shipping_methods.json",
    "adminUsers": "admin_users.json",
    "apiIntegrations": "api_integration.json",
    "paymentGateways": "payment_gateways.json",
    "paymentSettings": "payment_settings.json",
    "dataModeSettings": "data_mode_settings.json",
    "mainBanners": "main_banners.json",
    "mini_banners": "mini_banners.json",
    "pages": "pages.json",
    "pageCategories": "page_categories.json",
    "cartAbandonmentToggle": "cart_abandonment_toggle.json",
    "customers": "customers.json",
    "verificationTokens": "verification_tokens.json",
    "accounts": "accounts.json",
    "sessions": "sessions.json",
    "userProfiles": "user_profiles.json",
    "addresses": "addresses.json",
    "coupons": "coupons.json",
    "discounts": "discounts.json",
    "attributes": "attributes.json",
    "attributeValues": "attribute_values.json",
    "products": "products.json",
    "orders": "orders.json",
    "productVariations": "product_variations.json",
    "productAlternateImages": "product_alternate_images.json",
    "productAttributes": "product_attributes.json",
    "variantAttributes": "variant_attributes.json",
    "orderItems": "order_items.json",
    "reviews": "reviews.json",
    "refunds": "refunds.json",
    "cartSessions": "cart_sessions.json",
    "cartEvents": "cart_events.json",
    "cartsRecovered": "carts_recovered.json",
    "campaignEmails": "campaign_emails.json",
    "paymentTransactionLogs": "payment_transaction_logs.json",
    "paymentGatewayHealthChecks": "gateway_monitoring_logs.json",
    "pageRevisions": "page_revisions.json",
    "pageCategoryRelations": "page_category_relations.json",
    "pageAnalytics": "page_analytics.json",
}

# SQL table behind each logical name. Two exports predate the current
# naming and keep their old tables.
PHYSICAL_TABLES: dict[str, str] = {
    "users": "users",
    "categories": "categories",
    "taxonomy": "taxonomy",
    "brands": "brands",
    "settings": "settings",
    "taxRates": "tax_rates",
    "shippingMethods": "shipping_methods",
    "adminUsers": "admin_users",
    "apiIntegrations": "api_integration",
    "paymentGateways": "payment_gateways",
    "paymentSettings": "payment_settings",
    "dataModeSettings": "data_mode_settings",
    "mainBanners": "main_banners",
    "mini_banners": "mini_banners",
    "pages": "pages",
    "pageCategories": "page_categories",
    "cartAbandonmentToggle": "cart_abandonment_toggle",
    "customers": "customers",
    "verificationTokens": "verification_tokens",
    "accounts": "accounts",
    "sessions": "sessions",
    "userProfiles": "user_profiles",
    "addresses": "addresses",
    "coupons": "coupons",
    "discounts": "discounts",
    "attributes": "attributes",
    "attributeValues": "attribute_values",
    "products": "products",
    "orders": "orders",
    "productVariations": "product_variations",
    "productAlternateImages": "product_alternate_images",
    "productAttributes": "product_attributes",
    "variantAttributes": "variant_attributes",
    "orderItems": "order_items",
    "reviews": "reviews",
    "refunds": "refunds",
    "cartSessions": "cart_sessions",
    "cartEvents": "cart_events",
    "cartsRecovered": "carts_recovered",
    "campaignEmails": "campaign_emails",
    "paymentTransactionLogs": "payment_transaction_logs",
    "paymentGatewayHealthChecks": "gateway_monitoring_logs",
    "pageRevisions": "page_revisions",
    "pageCategoryRelations": "page_category_relations",
    "pageAnalytics": "page_analytics",
}

# Configuration tables the delete endpoint never wipes.
PROTECTED_TABLES: frozenset[str] = frozenset({"settings"})

KNOWN_TABLES: frozenset[str] = frozenset(INSERTION_ORDER)


def physical_table_name(name: str) -> str:
    """Map a logical table name to its SQL table.

    >>> physical_table_name("paymentGatewayHealthChecks")
    'gateway_monitoring_logs'
    >>> physical_table_name("mini_banners")
    'mini_banners'

    Raises KeyError for a name outside PHYSICAL_TABLES.
    """
    return PHYSICAL_TABLES[name]


def find_duplicates(names: Iterable[str]) -> list[str]:
    """Return names that occur more than once, in first-seen order."""
    counts = Counter(names)
    return [name for name, n in counts.items() if n > 1]


def validate_orders(
    deletion: Sequence[str] = DELETION_ORDER,
    insertion: Sequence[str] = INSERTION_ORDER,
    foreign_keys: Iterable[tuple[str, str]] = FOREIGN_KEYS,
) -> list[str]:
    """Check two table orders against each other and a set of FK pairs.

    Returns a list of violations; an empty list means the orders are
    consistent. FK pairs naming a table absent from either list are
    reported rather than skipped.
    """
    problems: list[str] = []

    for name in find_duplicates(deletion):
        problems.append(f"duplicate in deletion order: {name}")
    for name in find_duplicates(insertion):
        problems.append(f"duplicate in insertion order: {name}")

    for name in sorted(set(deletion) - set(insertion)):
        problems.append(f"deleted but never reinserted: {name}")
    for name in sorted(set(insertion) - set(deletion)):
        problems.append(f"inserted but never deleted: {name}")

    del_pos = {name: i for i, name in enumerate(deletion)}
    ins_pos = {name: i for i, name in enumerate(insertion)}

    for child, parent in foreign_keys:
        missing = [t for t in (child, parent) if t not in del_pos or t not in ins_pos]
        if missing:
            problems.append(f"foreign key {child} -> {parent} names unknown table(s): {missing}")
            continue
        if del_pos[child] > del_pos[parent]:
            problems.append(f"deletion order: {child} must come before {parent}")
        if ins_pos[parent] > ins_pos[child]:
            problems.append(f"insertion order: {parent} must come before {child}")

    return problems
