"""Deep links handed to the visitor: viewer, WhatsApp, phone and Instagram."""

import re
from decimal import Decimal
from typing import Dict, Iterable, Optional
from urllib.parse import quote, urlencode

from .cart import CartLine, format_price
from .config import Settings

_NON_DIGITS = re.compile(r"\D")


def whatsapp_link(number: str, text: Optional[str] = None) -> str:
    # wa.me wants the bare international number
    url = f"https://wa.me/{_NON_DIGITS.sub('', number)}"
    if text:
        url += f"?text={quote(text)}"
    return url


def viewer_url(file_path: str, settings: Settings) -> str:
    public = f"{settings.backend_url}/public/{file_path.lstrip('/')}"
    return f"{settings.viewer_url}?{urlencode({'embedded': 'true', 'url': public})}"


def menu_link(slug: str, settings: Settings) -> str:
    return f"{settings.public_url}/{slug}"


def document_link(slug: str, settings: Settings) -> str:
    return f"{settings.public_url}/pdf/{slug}"


def order_message(restaurant_name: str, lines: Iterable[CartLine], symbol: str = "₹") -> str:
    lines = list(lines)
    rows = [f"Hi {restaurant_name}, I would like to order:"]
    total = sum((line.line_total for line in lines), Decimal("0.00"))
    for line in lines:
        rows.append(f"- {line.name} x{line.quantity} = {format_price(line.line_total, symbol)}")
    rows.append(f"Total: {format_price(total, symbol)}")
    return "\n".join(rows)


def contact_links(phone: Optional[str], whatsapp: Optional[str], instagram: Optional[str]) -> Dict[str, str]:
    links = {}
    if phone:
        links["phone"] = f"tel:{phone}"
    if whatsapp:
        links["whatsapp"] = whatsapp_link(whatsapp)
    if instagram:
        links["instagram"] = f"https://instagram.com/{instagram.lstrip('@')}"
    return links


def membership_cta_link(plan_name: str, settings: Settings) -> str:
    message = f"Hi, I want to get the {plan_name} in {settings.public_url}. Please assist me."
    return whatsapp_link(settings.support_whatsapp, message)


def qr_code_request_link(settings: Settings) -> str:
    return whatsapp_link(settings.support_whatsapp, "Hi, I would like to get my QR code for my menu")
