# app/services/notification.py
"""
Уведомления по заказам: in-app, email и push.

Каждый канал работает независимо и "по возможности": ошибка одного канала
логируется и не мешает ни остальным каналам, ни смене статуса заказа.
"""
import asyncio
import logging
from typing import Dict

from sqlalchemy.orm import Session

from app.clients.push import push_client
from app.core.config import settings
from app.crud import notification as crud_notification
from app.models.order import Order, OrderStatus
from app.services.email import deliver_email

logger = logging.getLogger(__name__)

# Карта статусов в человекочитаемый формат
ORDER_STATUS_MAP = {
    OrderStatus.pending: "Ожидает обработки",
    OrderStatus.processing: "В обработке",
    OrderStatus.shipped: "Отправлен",
    OrderStatus.delivered: "Доставлен",
    OrderStatus.cancelled: "Отменен",
}

PUSH_TYPE_BY_STATUS = {
    OrderStatus.pending: "order_pending",
    OrderStatus.processing: "order_processing",
    OrderStatus.shipped: "order_shipped",
    OrderStatus.delivered: "order_delivered",
    OrderStatus.cancelled: "order_cancelled",
}


def _order_email(order: Order) -> str | None:
    if order.email:
        return order.email
    return order.user.email if order.user else None


def _order_url(order: Order) -> str:
    return f"{settings.FRONTEND_URL}/orders?order={order.order_number}"


def _send_in_app(db: Session, order: Order, type: str, title: str, message: str) -> bool:
    try:
        crud_notification.create_notification(
            db, user_id=order.user_id, type=type, title=title,
            message=message, related_entity_id=order.order_number,
        )
        return True
    except Exception:
        logger.error(f"Failed to create in-app notification for order {order.id}", exc_info=True)
        db.rollback()
        return False


async def _send_email(order: Order, subject: str, body: str) -> bool:
    to_email = _order_email(order)
    if not to_email:
        logger.warning(f"Email not sent for order {order.id}: no email address.")
        return False
    try:
        await asyncio.to_thread(deliver_email, to_email, subject, body)
        return True
    except Exception:
        logger.error(f"Failed to send email for order {order.id} to {to_email}", exc_info=True)
        return False


async def _send_push(order: Order, push_type: str, title: str, message: str) -> bool:
    try:
        await push_client.send(
            order.user_id, title, message,
            data={"type": push_type, "orderId": order.id, "orderNumber": order.order_number},
        )
        return True
    except Exception:
        logger.error(f"Failed to send push for order {order.id}", exc_info=True)
        return False


async def notify_new_order(db: Session, order: Order) -> Dict[str, bool]:
    """Подтверждение нового заказа покупателю."""
    title = f"Заказ #{order.order_number} оформлен"
    message = f"Спасибо за заказ! Сумма к оплате: {order.total_price} ₽."
    if order.loyalty_points_used:
        message += f" Списано баллов: {order.loyalty_points_used}."
    body = f"{message}\n\nСледить за заказом: {_order_url(order)}"

    return {
        "in_app": _send_in_app(db, order, "order_new", title, message),
        "email": await _send_email(order, title, body),
        "push": await _send_push(order, "order_pending", title, message),
    }


async def notify_order_status_changed(db: Session, order: Order) -> Dict[str, bool]:
    """Рассылка по всем каналам при смене статуса заказа."""
    status_text = ORDER_STATUS_MAP.get(order.status, str(order.status))
    title = f"Заказ #{order.order_number}: {status_text}"
    message = f"Статус вашего заказа изменен на «{status_text}»."
    if order.status == OrderStatus.delivered and order.points_earned:
        message += f" Начислено баллов: {order.points_earned}."
    if order.tracking_number:
        message += f" Трек-номер: {order.tracking_number}."
    body = f"{message}\n\nПодробнее: {_order_url(order)}"
    push_type = PUSH_TYPE_BY_STATUS.get(order.status, "order_pending")

    results = {
        "in_app": _send_in_app(db, order, "order_status_update", title, message),
        "email": await _send_email(order, title, body),
        "push": await _send_push(order, push_type, title, message),
    }
    logger.info(f"Status notifications for order {order.id}: {results}")
    return results


async def notify_tracking_number(db: Session, order: Order) -> Dict[str, bool]:
    title = f"Заказ #{order.order_number} отправлен"
    message = f"Ваш заказ отправлен. Трек-номер: {order.tracking_number}."
    body = f"{message}\n\nОтследить: {settings.FRONTEND_URL}/orders?track={order.tracking_number}"

    return {
        "in_app": _send_in_app(db, order, "order_tracking", title, message),
        "email": await _send_email(order, title, body),
        "push": await _send_push(order, "order_shipped", title, message),
    }
