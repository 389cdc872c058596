"""
User profile reads and checkout details (shipping address, payment method).
"""
import logging
from typing import Optional

from storefront.actions import action
from storefront.config import Config
from storefront.exceptions import Unauthenticated, ValidationError
from storefront.models import ActionResult, PaymentMethodRequest, RequestContext, ShippingAddress, User
from storefront.redis_client import RedisClient, get_redis_client
from storefront.repositories import UserRepository
from storefront.unit_of_work import UnitOfWork, run_in_transaction
from storefront.validators import require_valid

logger = logging.getLogger(__name__)


class UserService:
    """Service for user profile operations"""

    def __init__(self, redis: Optional[RedisClient] = None):
        self.redis = redis or get_redis_client()
        self.users = UserRepository(self.redis)

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def save_user(self, user: User) -> User:
        run_in_transaction(self.redis, lambda uow: self.users.save(uow, user))
        return user

    def _update(self, context: RequestContext, **changes) -> User:
        if not context.user_id:
            raise Unauthenticated()

        def work(uow: UnitOfWork) -> User:
            user = self.users.get(context.user_id, uow)
            if user is None:
                raise Unauthenticated()
            updated = user.model_copy(update=changes)
            self.users.save(uow, updated)
            return updated

        return run_in_transaction(self.redis, work)

    @action
    def update_user_address(self, context: RequestContext, data) -> ActionResult:
        address = require_valid(ShippingAddress, data)
        self._update(context, address=address)
        return ActionResult(success=True, message="User updated successfully")

    @action
    def update_user_payment_method(self, context: RequestContext, data) -> ActionResult:
        request = require_valid(PaymentMethodRequest, data)
        if request.payment_method not in Config.PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {request.payment_method}")
        self._update(context, payment_method=request.payment_method)
        return ActionResult(success=True, message="User updated successfully")
