"""
Purpose: Read-only access to catalog product metadata.

Role: Narrow collaborator for the cart and order services. The catalog is
maintained elsewhere; nothing here writes to the products table.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ProductUnavailableError
from storefront.models.product import Product


class CatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_product(self, product_id: int) -> Optional[Product]:
        """Retrieves a product by ID, or None if it does not exist."""
        return await self.db.get(Product, product_id)

    async def require_active(self, product_id: int) -> Product:
        """
        Retrieves a product that can be sold right now.

        Raises:
            ProductUnavailableError: the product is missing or inactive
        """
        product = await self.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductUnavailableError(product_id, product.name if product else None)
        return product
