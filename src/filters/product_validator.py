# src/filters/product_validator.py

"""Product validation: drop implausible records before they leave a scraper."""

import logging
from collections.abc import Callable

from src.models.product import Product

logger = logging.getLogger("refurb_tracker.filters")


def has_required_fields(product: Product) -> bool:
    """Name, URL and source id must all be non-empty."""
    return bool(
        product.name.strip()
        and product.url.strip()
        and product.source_id.strip()
    )


class ProductValidator:
    """Validate products and drop those failing a source's plausibility check."""

    @staticmethod
    def validate(
        products: list[Product],
        is_valid: Callable[[Product], bool] = has_required_fields,
    ) -> tuple[list[Product], int]:
        """Split *products* by *is_valid*.

        Returns the valid products and the count of dropped items.
        """
        valid: list[Product] = []
        dropped = 0

        for product in products:
            if not is_valid(product):
                logger.debug(
                    "Dropped invalid product (source=%s, name=%s, "
                    "category=%s)",
                    product.source_id,
                    product.name,
                    product.category,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid products",
                dropped,
            )

        return valid, dropped
