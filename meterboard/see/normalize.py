"""
Product name normalization.
"""

import re

TIER_SUFFIX = re.compile(r"\s*-\s*Tier\s+\d+$", re.IGNORECASE)


def normalize_product_name(product_name: str) -> str:
    """Strip a trailing " - Tier N" so tiered prices share one product bucket."""
    return TIER_SUFFIX.sub("", product_name)
