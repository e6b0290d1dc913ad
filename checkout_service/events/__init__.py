from .producer import checkout_event_producer, CheckoutEventProducer

__all__ = [
    "checkout_event_producer",
    "CheckoutEventProducer"
]
