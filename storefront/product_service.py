"""
Catalog reads and admin product management.
"""
import logging
from typing import List, Optional

from storefront.actions import action
from storefront.config import Config
from storefront.exceptions import ProductNotFound, ValidationError
from storefront.models import ActionResult, Product, ProductInput, ProductPage
from storefront.redis_client import RedisClient, get_redis_client
from storefront.repositories import ProductRepository, total_pages
from storefront.unit_of_work import UnitOfWork, run_in_transaction
from storefront.validators import require_valid

logger = logging.getLogger(__name__)


class ProductService:
    """Service for catalog operations"""

    def __init__(self, redis: Optional[RedisClient] = None):
        self.redis = redis or get_redis_client()
        self.products = ProductRepository(self.redis)

    def get_latest_products(self, limit: Optional[int] = None) -> List[Product]:
        return self.products.latest(limit or Config.LATEST_PRODUCTS_LIMIT)

    def get_product_by_slug(self, slug: str) -> Optional[Product]:
        return self.products.get_by_slug(slug)

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    def get_all_products(
        self,
        query: str = "",
        category: str = "",
        page: int = 1,
        limit: Optional[int] = None
    ) -> ProductPage:
        """Newest-first listing filtered by name substring and exact category"""
        limit = limit or Config.PAGE_SIZE
        needle = query.strip().lower()
        matches = [
            p for p in self.products.all()
            if (not needle or needle in p.name.lower())
            and (not category or p.category == category)
        ]
        start = (max(page, 1) - 1) * limit
        return ProductPage(data=matches[start:start + limit], total_pages=total_pages(len(matches), limit))

    def _ensure_slug_free(self, uow: UnitOfWork, slug: str, product_id: str) -> None:
        owner = self.products.slug_owner(slug, uow)
        if owner and owner != product_id:
            raise ValidationError(f"Slug already in use: {slug}")

    @action
    def create_product(self, data) -> ActionResult:
        product_input = require_valid(ProductInput, data)
        product = Product(**product_input.model_dump())

        def work(uow: UnitOfWork) -> None:
            self._ensure_slug_free(uow, product.slug, product.id)
            self.products.save(uow, product)

        run_in_transaction(self.redis, work)
        logger.info(f"Product created: {product.id}", extra={"product_id": product.id})
        return ActionResult(success=True, message="Product created successfully")

    @action
    def update_product(self, product_id: str, data) -> ActionResult:
        product_input = require_valid(ProductInput, data)

        def work(uow: UnitOfWork) -> None:
            existing = self.products.get(product_id, uow)
            if existing is None:
                raise ProductNotFound(product_id)
            self._ensure_slug_free(uow, product_input.slug, product_id)
            updated = existing.model_copy(update=product_input.model_dump())
            self.products.save(uow, updated, previous_slug=existing.slug)

        run_in_transaction(self.redis, work)
        logger.info(f"Product updated: {product_id}", extra={"product_id": product_id})
        return ActionResult(success=True, message="Product updated successfully")

    @action
    def delete_product(self, product_id: str) -> ActionResult:
        def work(uow: UnitOfWork) -> None:
            existing = self.products.get(product_id, uow)
            if existing is None:
                raise ProductNotFound(product_id)
            self.products.delete(uow, existing)

        run_in_transaction(self.redis, work)
        logger.info(f"Product deleted: {product_id}", extra={"product_id": product_id})
        return ActionResult(success=True, message="Product deleted successfully")
