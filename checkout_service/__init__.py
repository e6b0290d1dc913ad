"""Сервис корзины и оформления заказов"""

__version__ = "1.0.0"
