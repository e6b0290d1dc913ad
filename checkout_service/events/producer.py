import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from ..config import settings

logger = logging.getLogger(__name__)

# Топик -> тип события в конверте
ORDER_CREATED = ("order.created", "order_created")
CART_CLEARED = ("cart.cleared", "cart_cleared")
CART_ITEM_ADDED = ("cart.item.added", "item_added_to_cart")


def build_event(event_type: str, payload: Dict[str, Any], producer_service: str) -> Dict[str, Any]:
    """Стандартный конверт события"""
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "event_timestamp": datetime.utcnow().isoformat(),
        "producer_service": producer_service,
        "payload": payload,
    }


class CheckoutEventProducer:
    """Публикация доменных событий корзины и заказов.

    Все публикации best effort: ошибка Kafka логируется и возвращается как
    False, вызывающий код никогда не падает из-за брокера.
    """

    def __init__(self, bootstrap_servers: Optional[str] = None, client_id: Optional[str] = None):
        self.bootstrap_servers = bootstrap_servers or settings.kafka_bootstrap_servers
        self.client_id = client_id or settings.kafka_client_id
        self.producer: Optional[AIOKafkaProducer] = None

    @property
    def is_running(self) -> bool:
        return self.producer is not None

    async def start(self):
        producer = AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            retry_backoff_ms=1000,
            request_timeout_ms=30000,
            acks="all",
            enable_idempotence=True
        )
        try:
            await producer.start()
        except KafkaError as e:
            logger.error(f"❌ Failed to start checkout event producer ({self.bootstrap_servers}): {e}")
            raise

        self.producer = producer
        logger.info(f"✅ Checkout event producer connected to {self.bootstrap_servers}")

    async def stop(self):
        if not self.is_running:
            return

        producer, self.producer = self.producer, None
        try:
            await producer.stop()
            logger.info("✅ Checkout event producer stopped")
        except KafkaError as e:
            logger.error(f"❌ Error stopping checkout event producer: {e}")

    async def publish(self, route: tuple, payload: Dict[str, Any], key: Optional[str] = None) -> bool:
        """Отправляет событие в топик; True если брокер подтвердил запись"""
        topic, event_type = route
        if not self.is_running:
            logger.debug(f"Producer is not running, {event_type} not published")
            return False

        event = build_event(event_type, payload, self.client_id)
        try:
            metadata = await self.producer.send_and_wait(topic, value=event, key=key)
        except KafkaError as e:
            logger.error(f"❌ Could not publish {event_type} to {topic}: {e}")
            return False

        logger.info(
            f"📨 {event_type} -> {topic} "
            f"[partition={metadata.partition} offset={metadata.offset}] event_id={event['event_id']}"
        )
        return True

    async def publish_order_created(self, order_data: Dict[str, Any]) -> bool:
        return await self.publish(ORDER_CREATED, order_data, key=order_data.get("order_id"))

    async def publish_cart_cleared(self, cart_data: Dict[str, Any]) -> bool:
        return await self.publish(CART_CLEARED, cart_data, key=cart_data.get("cart_id"))

    async def publish_cart_item_added(self, item_data: Dict[str, Any]) -> bool:
        return await self.publish(CART_ITEM_ADDED, item_data, key=item_data.get("cart_id"))


# Общий экземпляр на процесс, запускается в lifespan приложения
checkout_event_producer = CheckoutEventProducer()
