"""
Product reviews: one review per user and product, with the product's rating
and review count kept in step in the same unit of work.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from storefront.actions import action
from storefront.exceptions import ProductNotFound, Unauthenticated
from storefront.logging_config import hash_identifier
from storefront.models import ActionResult, RequestContext, Review, ReviewInput
from storefront.money import round2
from storefront.redis_client import RedisClient, get_redis_client
from storefront.repositories import ProductRepository, ReviewRepository, UserRepository
from storefront.unit_of_work import UnitOfWork, run_in_transaction
from storefront.validators import require_valid

logger = logging.getLogger(__name__)


def average_rating(reviews: List[Review]) -> Decimal:
    if not reviews:
        return Decimal("0")
    return round2(Decimal(sum(r.rating for r in reviews)) / len(reviews))


class ReviewService:
    """Service for product review operations"""

    def __init__(self, redis: Optional[RedisClient] = None):
        self.redis = redis or get_redis_client()
        self.reviews = ReviewRepository(self.redis)
        self.products = ProductRepository(self.redis)
        self.users = UserRepository(self.redis)

    def get_reviews(self, product_id: str) -> List[Review]:
        return self.reviews.for_product(product_id)

    def get_review_by_product_id(self, context: RequestContext, product_id: str) -> Optional[Review]:
        """The signed-in user's own review of a product, for pre-filling the form"""
        if not context.user_id:
            raise Unauthenticated()
        return self.reviews.find_by_author(context.user_id, product_id)

    @action
    def create_update_review(self, context: RequestContext, data) -> ActionResult:
        """
        Create the user's review of a product, or overwrite the one they
        already wrote, then recompute the product's rating and review count.
        """
        if not context.user_id:
            raise Unauthenticated()
        request = require_valid(ReviewInput, data)

        def work(uow: UnitOfWork):
            user = self.users.get(context.user_id, uow)
            if user is None:
                raise Unauthenticated()
            product = self.products.get(request.product_id, uow)
            if product is None:
                raise ProductNotFound(request.product_id)
            existing = self.reviews.find_by_author(user.id, product.id, uow)
            others = [r for r in self.reviews.for_product(product.id, uow)
                      if existing is None or r.id != existing.id]

            fields = request.model_dump(include={"rating", "title", "description"})
            if existing is not None:
                review = existing.model_copy(update=fields)
            else:
                review = Review(
                    user_id=user.id,
                    user_name=user.name,
                    product_id=product.id,
                    created_at=context.now,
                    **fields,
                )
            rated = others + [review]

            self.reviews.save(uow, review)
            self.products.save(uow, product.model_copy(update={
                "rating": average_rating(rated),
                "num_reviews": len(rated),
            }))
            return review, existing is not None

        review, updated = run_in_transaction(self.redis, work)

        logger.info(
            f"Review {'updated' if updated else 'created'}: {review.id}",
            extra={
                "review_id": review.id,
                "product_id": review.product_id,
                "hashed_user_id": hash_identifier(review.user_id),
            }
        )
        if updated:
            return ActionResult(success=True, message="Review updated successfully")
        return ActionResult(success=True, message="Review created successfully")
