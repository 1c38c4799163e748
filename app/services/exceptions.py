# app/services/exceptions.py

class LoyaltyError(Exception):
    """Базовая ошибка сервисного слоя магазина."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class LoyaltyConflictError(LoyaltyError):
    """Баланс изменился параллельно (устаревшая версия счета)."""
    pass


class InsufficientPointsError(LoyaltyError):
    """Недостаточно баллов для списания."""
    pass


class OrderNotFoundError(LoyaltyError):
    """Заказ не найден."""
    pass


class OrderValidationError(LoyaltyError):
    """Некорректные данные заказа."""
    pass


class OrderConflictError(LoyaltyError):
    """Не удалось сохранить заказ из-за параллельного оформления."""
    pass
