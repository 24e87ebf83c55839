from datetime import datetime, timezone


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def normalize_coupon_code(code: str) -> str:
    """Normalize a coupon code for catalog lookup."""
    return code.strip().upper()


def format_money(amount: float, symbol: str = "₹") -> str:
    """Format an amount for display, dropping the decimals of whole amounts."""
    if float(amount).is_integer():
        return f"{symbol}{int(amount)}"
    return f"{symbol}{amount:.2f}"
