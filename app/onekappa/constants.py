"""
Central constants for the marketplace.
"""
from __future__ import annotations

# Application review lifecycle (sellers, promoters, stewards)
APPLICATION_STATUSES = ("PENDING", "APPROVED", "REJECTED")

MEMBER_VERIFICATION_STATUSES = ("PENDING", "VERIFIED", "FAILED", "MANUAL_REVIEW")

ONBOARDING_STATUSES = ("ACCOUNT_CREATED", "ONBOARDING_STARTED", "ONBOARDING_FINISHED")

# Revenue split
PRODUCT_APPLICATION_FEE_RATE = 0.08
CHAPTER_DONATION_RATE = 0.03
DEFAULT_STEWARD_PLATFORM_FEE_RATE = 0.05

# Image uploads
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
MAX_IMAGE_BYTES = 5 * 1024 * 1024
UPLOAD_FOLDERS = frozenset({"products", "events", "headshots", "logos", "steward-listings"})

# Permission key -> display name
PERMISSIONS = {
    "admin.view": "Admin: view",
    "admin.approvals": "Admin: approve sellers/promoters/stewards",
    "admin.members": "Admin: verify members",
    "admin.chapters": "Admin: manage chapters",
    "admin.settings": "Admin: platform settings",
    "admin.moderate": "Admin: moderate products/events",
    "admin.donations": "Admin: donation reports",
    "admin.upload": "Admin: upload images",
    "admin.catalog": "Admin: manage reference catalog",
    "products.manage": "Products: manage own listings",
    "events.manage": "Events: manage own events",
    "steward_listings.manage": "Steward: manage own listings",
}

# Role key -> (display name, permission keys)
ROLE_PERMISSIONS = {
    "admin": (
        "Administrator",
        (
            "admin.view",
            "admin.approvals",
            "admin.members",
            "admin.chapters",
            "admin.settings",
            "admin.moderate",
            "admin.donations",
            "admin.upload",
            "admin.catalog",
        ),
    ),
    "seller": ("Seller", ("products.manage",)),
    "promoter": ("Promoter", ("events.manage",)),
    "steward": ("Steward", ("steward_listings.manage",)),
    "member": ("Verified Member", ()),
    "guest": ("Guest", ()),
}

DEFAULT_PLATFORM_SETTINGS = {
    "steward_platform_fee_percentage": ("0.05", "Steward claim platform fee as a fraction (0 < p <= 1)."),
    "steward_platform_fee_flat_cents": ("", "Flat steward platform fee in cents, used when no percentage is set."),
}
