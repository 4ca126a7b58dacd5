from .quantity import QTY_MAX, QTY_PLACES, quantize_qty, to_qty

__all__ = ["QTY_MAX", "QTY_PLACES", "quantize_qty", "to_qty"]
