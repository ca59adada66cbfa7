"""Loyalty coupon rules and cashback messages - no I/O dependencies."""

import random
import re
import string
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from urllib.parse import quote

from .formatters import format_brl, unformat_phone
from .recurrence import parse_timestamp, to_utc

PERCENTAGE = "percentage"
FIXED = "fixed"

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits

TEMPLATE_LOW = """| CUPOM CASHBACK |

Olá {nome}! Amei te atender hoje!
Uhuu! Você garantiu R${valor} de cashback para usar na Churrosteria!
Use na sua próxima compra dentro de 7 dias.
Corre pra aproveitar e experimentar uma delícia nova! Qualquer dúvida é só chamar!
Validade: {validade}
Ele pode ser utilizado em compras a partir de R${minimo}.
Use e já garante um novo cupom. Te vejo em breve!"""

TEMPLATE_HIGH = TEMPLATE_LOW.replace("já garante", "já garanta")


@dataclass
class CouponRules:
    """Store-configurable cashback rules."""

    threshold: float = 50.0
    low_value: float = 5.0
    high_value: float = 10.0
    min_purchase_low: float = 30.0
    min_purchase_high: float = 50.0
    valid_days: int = 7


@dataclass
class Coupon:
    """A customer coupon."""

    id: str
    code: str
    customer_id: str
    discount_type: str
    discount_value: float
    expire_at: datetime
    is_active: bool = True
    is_used: bool = False
    customer_name: str = ""
    customer_phone: str = ""

    @property
    def is_percentage(self) -> bool:
        return self.discount_type == PERCENTAGE

    def describe(self) -> str:
        """Human-readable discount, e.g. "10% de desconto" or "R$ 5,00 de desconto"."""
        if self.is_percentage:
            return f"{self.discount_value:g}% de desconto"
        return f"R$ {format_brl(self.discount_value)} de desconto"

    @classmethod
    def from_api(cls, data: dict) -> "Coupon":
        """Create Coupon from a `coupons` row, optionally joined with `customers`."""
        customer = data.get("customers") or {}
        return cls(
            id=data["id"],
            code=data["code"],
            customer_id=data.get("customer_id") or customer.get("id", ""),
            discount_type=data.get("discount_type", FIXED),
            discount_value=float(data.get("discount_value", 0)),
            expire_at=parse_timestamp(data["expire_at"]),
            is_active=data.get("is_active", True),
            is_used=bool(data.get("is_used")),
            customer_name=customer.get("name", ""),
            customer_phone=customer.get("phone", "") or "",
        )


def suggest_loyalty_coupon(
    customer_id: str | None,
    total: float,
    rules: CouponRules | None = None,
) -> float | None:
    """
    Cashback value to offer after a sale, or None without a customer.

    Totals above the threshold earn the high value, anything else the low value.
    """
    rules = rules or CouponRules()
    if not customer_id:
        return None
    return rules.high_value if total > rules.threshold else rules.low_value


def minimum_purchase(value: float, rules: CouponRules | None = None) -> float:
    """Minimum purchase needed to redeem a cashback coupon of `value`."""
    rules = rules or CouponRules()
    if value == rules.high_value:
        return rules.min_purchase_high
    return rules.min_purchase_low


def template_for(
    value: float,
    rules: CouponRules | None = None,
    low: str = "",
    high: str = "",
) -> str:
    """Message template for the coupon's tier; blank overrides fall back to the defaults."""
    rules = rules or CouponRules()
    if value == rules.high_value:
        return high or TEMPLATE_HIGH
    return low or TEMPLATE_LOW


def expiry_for(issued: datetime, rules: CouponRules | None = None) -> datetime:
    rules = rules or CouponRules()
    return issued + timedelta(days=rules.valid_days)


def coupon_code(rng: random.Random | None = None) -> str:
    """Random six-character upper-case alphanumeric code."""
    rng = rng or random.Random()
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def expiring_coupons(coupons: list[Coupon], now: datetime, days: int = 3) -> list[Coupon]:
    """Active, unused coupons expiring between now and the end of the day `days` ahead."""
    now = to_utc(now)
    horizon = datetime.combine(now.date() + timedelta(days=days), time.max, tzinfo=now.tzinfo)
    soon = [
        c
        for c in coupons
        if c.is_active and not c.is_used and now <= c.expire_at <= horizon
    ]
    return sorted(soon, key=lambda c: c.expire_at)


def is_redeemable(
    coupon: Coupon,
    subtotal: float,
    now: datetime,
    rules: CouponRules | None = None,
) -> bool:
    """Whether the coupon can be applied to a sale of `subtotal` at `now`."""
    if not coupon.is_active or coupon.is_used or coupon.expire_at < to_utc(now):
        return False
    if coupon.is_percentage:
        return True
    return subtotal >= minimum_purchase(coupon.discount_value, rules)


def apply_coupon(subtotal: float, coupon: Coupon) -> float:
    """Discount amount for the sale. Never exceeds the subtotal."""
    if coupon.is_percentage:
        discount = subtotal * coupon.discount_value / 100
    else:
        discount = coupon.discount_value
    return round(min(max(discount, 0.0), subtotal), 2)


def render_coupon_message(
    template: str,
    name: str,
    value: float,
    expires: date | datetime,
    minimum: float,
) -> str:
    """Fill the {nome}, {valor}, {validade} and {minimo} placeholders."""
    if isinstance(expires, datetime):
        expires = expires.date()
    return (
        template.replace("{nome}", name)
        .replace("{valor}", format_brl(value))
        .replace("{validade}", expires.strftime("%d/%m/%Y"))
        .replace("{minimo}", format_brl(minimum))
    )


def coupon_message_prompt(name: str, value: float, expires: date, minimum: float) -> str:
    """Prompt asking the text generator for one WhatsApp cashback message."""
    value_str = format_brl(value)
    min_str = format_brl(minimum)
    expires_str = expires.strftime("%d/%m/%Y")
    return f"""Crie UMA única mensagem de WhatsApp calorosa para avisar {name} que ganhou um cupom cashback na Churrosteria.

Informações do cupom:
- Valor: R${value_str}
- Validade: {expires_str}
- Valor mínimo de compra: R${min_str}

IMPORTANTE:
- Retorne APENAS o texto da mensagem, sem títulos, numerações ou prefixos como "Variação"
- Tom amigável e próximo, com emojis como 🤎🎉✨🏷️😍
- Mencione que dá para garantir outro cupom na próxima compra
- Máximo 400 caracteres
"""


def clean_generated_message(text: str) -> str:
    """Drop "Variação N:" headings and keep only the first message."""
    parts = re.split(r"\**Varia[çc][ãa]o \d+:\**", text, flags=re.IGNORECASE)
    first = next((p for p in parts if p.strip()), "")
    return first.split("\n\n**")[0].strip()


def whatsapp_link(phone: str, message: str) -> str:
    """wa.me deep link that opens a chat with `message` prefilled."""
    return f"https://wa.me/{unformat_phone(phone)}?text={quote(message)}"
