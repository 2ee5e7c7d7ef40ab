"""Built-in package definitions for package types without a catalog offer."""

from __future__ import annotations

from typing import NamedTuple

UNLIMITED_TIPS = -1
UNLIMITED_PURCHASE_CREDITS = 150
UNLIMITED_DISPLAY_CREDITS = 1000


class PackageDefaults(NamedTuple):
    name: str
    tip_count: int
    validity_days: int


PACKAGE_DEFAULTS: dict[str, PackageDefaults] = {
    "prediction": PackageDefaults("Single Tip", 1, 1),
    "weekend_pass": PackageDefaults("Weekend Package", 5, 3),
    "weekly_pass": PackageDefaults("Weekly Package", 8, 7),
    "monthly_sub": PackageDefaults("Monthly Subscription", UNLIMITED_TIPS, 30),
}


def package_defaults(package_type: str) -> PackageDefaults:
    """Defaults for ``package_type``; unknown types get a one-tip, one-day package named after the type."""
    return PACKAGE_DEFAULTS.get(package_type, PackageDefaults(package_type, 1, 1))


def purchase_credits(tip_count: int) -> int:
    """Prediction credits granted when a package is bought."""
    return UNLIMITED_PURCHASE_CREDITS if tip_count == UNLIMITED_TIPS else tip_count


def display_credits(tip_count: int) -> int:
    """Credits shown in the purchase history."""
    return UNLIMITED_DISPLAY_CREDITS if tip_count == UNLIMITED_TIPS else tip_count


def parse_package_item_id(item_id: str) -> tuple[int, str] | None:
    """Split ``"{country_id}_{package_type}"`` on the first underscore.

    Returns ``None`` for plain offer-price ids and for a non-numeric country.
    """
    if "_" not in item_id:
        return None
    country_id, package_type = item_id.split("_", 1)
    if not country_id.isdigit():
        return None
    return int(country_id), package_type
