from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional

from cart_engine.config.coupon_config import COUPON_DEFINITIONS
from cart_engine.models.coupon import Coupon
from cart_engine.utils.helpers import normalize_coupon_code


class CouponCatalog:
    """Read-only, case-insensitive registry of coupon definitions."""

    def __init__(self, coupons: Iterable[Coupon]):
        self._coupons: Mapping[str, Coupon] = MappingProxyType(
            {normalize_coupon_code(coupon.code): coupon for coupon in coupons}
        )

    @classmethod
    def from_definitions(cls, definitions: Mapping[str, Dict[str, Any]]) -> "CouponCatalog":
        """Build a catalog from a ``{code: definition}`` table."""
        return cls(
            Coupon(code=normalize_coupon_code(code), **definition)
            for code, definition in definitions.items()
        )

    @classmethod
    def default(cls) -> "CouponCatalog":
        """Catalog of the storefront's configured coupons."""
        return cls.from_definitions(COUPON_DEFINITIONS)

    def lookup(self, code: Optional[str]) -> Optional[Coupon]:
        """Get a coupon by code, ignoring case. Unknown or empty codes yield None."""
        if not code:
            return None
        return self._coupons.get(normalize_coupon_code(code))

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and self.lookup(code) is not None

    def __iter__(self) -> Iterator[Coupon]:
        return iter(self._coupons.values())

    def __len__(self) -> int:
        return len(self._coupons)
