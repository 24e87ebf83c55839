from pydantic import BaseModel


class PricingSnapshot(BaseModel):
    """Derived price breakdown for a cart. Recomputed on every query, never persisted."""
    subtotal: float
    shipping_cost: float
    discount: float
    total: float

    class Config:
        frozen = True
