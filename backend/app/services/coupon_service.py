from typing import Any

from app.core.errors import ValidationError

# code -> (discount type, value, minimum order total)
COUPONS: dict[str, tuple[str, float, float]] = {
    "WELCOME10": ("percentage", 10, 5000),
    "NEWUSER20": ("percentage", 20, 10000),
    "FREESHIP": ("fixed", 1000, 15000),
}


class CouponService:
    @staticmethod
    def validate(code: str, total_amount: float) -> dict[str, Any]:
        normalized = code.strip().upper()
        coupon = COUPONS.get(normalized)
        if coupon is None:
            raise ValidationError("Invalid coupon code")

        discount_type, value, min_order = coupon
        if total_amount < min_order:
            raise ValidationError(
                f"Minimum order amount of NGN {min_order:,.0f} required for this coupon"
            )

        if discount_type == "percentage":
            discount = total_amount * value / 100
        else:
            discount = min(value, total_amount)
        discount = round(discount, 2)

        return {
            "code": normalized,
            "type": discount_type,
            "value": value,
            "discount": discount,
            "final_amount": round(total_amount - discount, 2),
        }
