import re
from typing import Dict, Optional, Sequence

from pizzeria.domain.errors import ValidationFailed
from pizzeria.domain.models import Customer, DeliveryArea, OrderLine, OrderType, PaymentMethod

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[0-9\s\-\+\(\)]+$")
ZIP_PATTERN = re.compile(r"^\d+$")


def _normalize(value: str) -> str:
    return " ".join(value.split()).casefold()


def resolve_delivery_area(zip_code: str, city: str, areas: Sequence[DeliveryArea]) -> Optional[DeliveryArea]:
    """The single configured area matching (zip, city), or None."""
    matches = [
        area for area in areas
        if area.zip_code.strip() == zip_code.strip() and _normalize(area.city) == _normalize(city)
    ]
    return matches[0] if len(matches) == 1 else None


def validate_customer(customer: Customer, order_type: OrderType, areas: Sequence[DeliveryArea]) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not customer.name or not customer.name.strip():
        errors["name"] = "Name ist erforderlich"

    if not customer.phone or not customer.phone.strip():
        errors["phone"] = "Telefonnummer ist erforderlich"
    elif not PHONE_PATTERN.match(customer.phone):
        errors["phone"] = "Telefonnummer darf nur Zahlen enthalten"

    if not customer.email or not customer.email.strip():
        errors["email"] = "E-Mail ist erforderlich"
    elif not EMAIL_PATTERN.match(customer.email.strip()):
        errors["email"] = "Ungültige E-Mail-Adresse"

    if order_type == OrderType.DELIVERY:
        address = customer.address
        if address is None:
            errors["address"] = "Lieferadresse ist erforderlich"
        else:
            if not address.street or not address.street.strip():
                errors["street"] = "Straße ist erforderlich"
            if not address.zip_code or not address.zip_code.strip():
                errors["zip"] = "PLZ ist erforderlich"
            elif not ZIP_PATTERN.match(address.zip_code.strip()):
                errors["zip"] = "PLZ darf nur Zahlen enthalten"
            if not address.city or not address.city.strip():
                errors["city"] = "Ort ist erforderlich"
            if not {"zip", "city"} & errors.keys() and resolve_delivery_area(address.zip_code, address.city, areas) is None:
                errors["address"] = "Wir liefern leider nicht in dieses Gebiet"

    return errors


def validate_checkout(
    customer: Customer,
    lines: Sequence[OrderLine],
    order_type: OrderType,
    payment_method: PaymentMethod,
    areas: Sequence[DeliveryArea],
    paypal_enabled: bool,
) -> None:
    """Raises ValidationFailed with every problem found, field by field."""
    errors = validate_customer(customer, order_type, areas)

    if not lines:
        errors["lines"] = "Der Warenkorb ist leer"

    if payment_method == PaymentMethod.PAYPAL and not paypal_enabled:
        errors["payment_method"] = "PayPal ist derzeit nicht verfügbar"

    if errors:
        raise ValidationFailed("Checkout validation failed: " + ", ".join(sorted(errors)), errors)
