from typing import Any, Dict, Optional


class CheckoutServiceError(Exception):
    """Базовая ошибка сервиса"""

    status_code = 500
    error = "checkout_service_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "detail": self.message, **self.extra}


class ValidationError(CheckoutServiceError):
    """Некорректное количество или идентификатор"""

    status_code = 400
    error = "validation_error"


class NotFoundError(CheckoutServiceError):
    """Товар, корзина или заказ не найдены"""

    status_code = 404
    error = "not_found"


class NoActiveCartError(NotFoundError):
    """У пользователя нет корзины или она пуста"""

    error = "no_active_cart"

    def __init__(self, user_id: str):
        super().__init__(f"No active cart with items for user {user_id}", user_id=user_id)


class InsufficientStockError(CheckoutServiceError):
    """Недостаточно товара на складе"""

    status_code = 409
    error = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested={requested}, available={available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ConflictError(CheckoutServiceError):
    """Параллельное оформление одной и той же корзины"""

    status_code = 409
    error = "conflict"


class PersistenceError(CheckoutServiceError):
    """Временная ошибка хранилища"""

    status_code = 503
    error = "persistence_error"

    def __init__(self, message: str, retryable: bool = True, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.retryable = retryable
        self.cause = cause
