"""
Coupon catalog configuration.

Static coupon definitions loaded once at process start. Each entry is keyed
by its uppercase code and declares:
- type: "percentage" | "fixed" | "free_shipping"
- value: percent for "percentage", amount for "fixed", unused for "free_shipping"
- min_order: minimum subtotal required for the coupon to apply
- description: text shown to the customer once applied
"""

from typing import Dict, Any


COUPON_DEFINITIONS: Dict[str, Dict[str, Any]] = {
    "SAVE10": {
        "type": "percentage",
        "value": 10,
        "min_order": 500,
        "description": "10% off on orders above ₹500"
    },
    "FLAT50": {
        "type": "fixed",
        "value": 50,
        "min_order": 300,
        "description": "₹50 off on orders above ₹300"
    },
    "WELCOME20": {
        "type": "percentage",
        "value": 20,
        "min_order": 1000,
        "description": "20% off on orders above ₹1000"
    },
    "FREESHIP": {
        "type": "free_shipping",
        "value": 0,
        "min_order": 1,
        "description": "Free shipping on any order"
    },
    "NEWBIE15": {
        "type": "percentage",
        "value": 15,
        "min_order": 799,
        "description": "15% off for new customers"
    }
}

