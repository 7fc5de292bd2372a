import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from pizzeria.core.config import settings
from pizzeria.domain.errors import NotFound, PersistenceFailed, ValidationFailed
from pizzeria.domain.models import CheckoutSettings, DeliveryArea, Discount
from pizzeria.domain.money import Money
from pizzeria.domain.pricing import as_aware, as_utc
from pizzeria.infrastructure.database import SessionLocal
from pizzeria.infrastructure.tables import DeliveryAreaRow, PromotionRow, RestaurantSettingRow
from pizzeria.interfaces.ISettingsProvider import ISettingsProvider

logger = logging.getLogger(__name__)

KNOWN_SETTINGS = {
    "delivery_fee",
    "minimum_order_value",
    "estimated_pickup_time",
    "estimated_delivery_time",
    "paypal_enabled",
}


def first_number(text, default: int) -> int:
    """"40-60" -> 40, "15 Minuten" -> 15."""
    match = re.search(r"\d+", str(text)) if text is not None else None
    return int(match.group(0)) if match else default


def _money_or(value, default: str) -> Money:
    try:
        return Money.parse(value) if value not in (None, "") else Money.parse(default)
    except ValueError:
        logger.warning("⚠️ Unreadable money setting %r, using default %s", value, default)
        return Money.parse(default)


def _flag(value, default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def discount_from_row(row: PromotionRow) -> Discount:
    return Discount(
        id=str(row.id),
        name=row.name,
        percentage=Decimal(str(row.percentage)),
        start_date=as_utc(row.start_date),
        end_date=as_utc(row.end_date),
        enabled=bool(row.enabled),
    )


def _validate_percentage(percentage) -> Decimal:
    try:
        value = Decimal(str(percentage))
    except InvalidOperation:
        raise ValidationFailed("Invalid percentage", {"percentage": "Ungültiger Prozentsatz"}) from None
    if not value.is_finite() or value < 0 or value > 100:
        raise ValidationFailed("Percentage must be between 0 and 100", {"percentage": "Prozentsatz muss zwischen 0 und 100 liegen"})
    return value


def _validate_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date is not None and end_date is not None and as_aware(end_date) < as_aware(start_date):
        raise ValidationFailed("End date before start date", {"end_date": "Enddatum liegt vor dem Startdatum"})


class SqlAlchemySettingsRepository(ISettingsProvider):
    """Restaurant settings, promotions and delivery areas."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    # --- Checkout snapshot ---

    def get_checkout_settings(self) -> CheckoutSettings:
        session = self.session_factory()
        try:
            values = {row.setting_key: row.setting_value for row in session.query(RestaurantSettingRow).all()}
            discounts = [discount_from_row(row) for row in session.query(PromotionRow).all()]
            areas = [
                DeliveryArea(id=str(row.id), zip_code=row.plz, city=row.city)
                for row in session.query(DeliveryAreaRow).order_by(DeliveryAreaRow.plz).all()
            ]
        except SQLAlchemyError as e:
            logger.error("❌ DB Error reading settings: %s", e)
            raise PersistenceFailed("get_checkout_settings", str(e)) from e
        finally:
            session.close()

        return CheckoutSettings(
            delivery_fee=_money_or(values.get("delivery_fee"), settings.DEFAULT_DELIVERY_FEE),
            free_delivery_threshold=_money_or(values.get("minimum_order_value"), settings.DEFAULT_FREE_DELIVERY_THRESHOLD),
            discounts=discounts,
            delivery_areas=areas,
            paypal_enabled=_flag(values.get("paypal_enabled"), settings.PAYPAL_ENABLED),
            estimated_pickup_minutes=first_number(values.get("estimated_pickup_time"), settings.DEFAULT_PICKUP_MINUTES),
            estimated_delivery_minutes=first_number(values.get("estimated_delivery_time"), settings.DEFAULT_DELIVERY_MINUTES),
        )

    # --- Key/value settings ---

    def get_settings(self) -> Dict[str, Optional[str]]:
        session = self.session_factory()
        try:
            rows = session.query(RestaurantSettingRow).order_by(RestaurantSettingRow.setting_key).all()
            return {row.setting_key: row.setting_value for row in rows}
        except SQLAlchemyError as e:
            raise PersistenceFailed("get_settings", str(e)) from e
        finally:
            session.close()

    def update_settings(self, updates: Dict[str, object]) -> Dict[str, Optional[str]]:
        unknown = set(updates) - KNOWN_SETTINGS
        if unknown:
            raise ValidationFailed(
                "Unknown settings: " + ", ".join(sorted(unknown)),
                {key: "Unbekannte Einstellung" for key in unknown},
            )
        for key in ("delivery_fee", "minimum_order_value"):
            if key in updates:
                try:
                    if Money.parse(updates[key]).cents < 0:
                        raise ValueError(key)
                except ValueError:
                    raise ValidationFailed(f"Invalid amount for {key}", {key: "Ungültiger Betrag"}) from None

        session = self.session_factory()
        try:
            for key, value in updates.items():
                row = session.get(RestaurantSettingRow, key)
                if row is None:
                    session.add(RestaurantSettingRow(setting_key=key, setting_value=None if value is None else str(value)))
                else:
                    row.setting_value = None if value is None else str(value)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error updating settings: %s", e)
            raise PersistenceFailed("update_settings", str(e)) from e
        finally:
            session.close()
        return self.get_settings()

    # --- Promotions ---

    def list_discounts(self) -> List[Discount]:
        session = self.session_factory()
        try:
            rows = session.query(PromotionRow).order_by(PromotionRow.created_at.desc(), PromotionRow.id.desc()).all()
            return [discount_from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceFailed("list_discounts", str(e)) from e
        finally:
            session.close()

    def create_discount(
        self,
        name: str,
        percentage,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        enabled: bool = True,
    ) -> Discount:
        if not name or not name.strip():
            raise ValidationFailed("Promotion name is required", {"name": "Name ist erforderlich"})
        value = _validate_percentage(percentage)
        _validate_window(start_date, end_date)

        session = self.session_factory()
        try:
            row = PromotionRow(name=name.strip(), percentage=value, start_date=as_utc(start_date), end_date=as_utc(end_date), enabled=enabled)
            session.add(row)
            session.commit()
            session.refresh(row)
            return discount_from_row(row)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error creating promotion: %s", e)
            raise PersistenceFailed("create_discount", str(e)) from e
        finally:
            session.close()

    def update_discount(self, discount_id: int, **changes) -> Discount:
        allowed = {"name", "percentage", "start_date", "end_date", "enabled"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationFailed("Unknown promotion fields: " + ", ".join(sorted(unknown)))
        if "percentage" in changes:
            changes["percentage"] = _validate_percentage(changes["percentage"])
        if "name" in changes and (not changes["name"] or not changes["name"].strip()):
            raise ValidationFailed("Promotion name is required", {"name": "Name ist erforderlich"})
        for field_name in ("start_date", "end_date"):
            if field_name in changes:
                changes[field_name] = as_utc(changes[field_name])

        session = self.session_factory()
        try:
            row = session.get(PromotionRow, discount_id)
            if row is None:
                raise NotFound(discount_id, "Promotion")
            for field_name, value in changes.items():
                setattr(row, field_name, value)
            _validate_window(row.start_date, row.end_date)
            session.commit()
            session.refresh(row)
            return discount_from_row(row)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error updating promotion %s: %s", discount_id, e)
            raise PersistenceFailed("update_discount", str(e)) from e
        finally:
            session.close()

    def delete_discount(self, discount_id: int) -> None:
        session = self.session_factory()
        try:
            rows = session.query(PromotionRow).filter(PromotionRow.id == discount_id).delete(synchronize_session=False)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceFailed("delete_discount", str(e)) from e
        finally:
            session.close()
        if rows == 0:
            raise NotFound(discount_id, "Promotion")

    # --- Delivery areas ---

    def list_delivery_areas(self) -> List[DeliveryArea]:
        session = self.session_factory()
        try:
            rows = session.query(DeliveryAreaRow).order_by(DeliveryAreaRow.plz).all()
            return [DeliveryArea(id=str(row.id), zip_code=row.plz, city=row.city) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceFailed("list_delivery_areas", str(e)) from e
        finally:
            session.close()

    def add_delivery_area(self, zip_code: str, city: str) -> DeliveryArea:
        zip_code, city = (zip_code or "").strip(), (city or "").strip()
        errors = {}
        if not zip_code.isdigit():
            errors["zip"] = "PLZ darf nur Zahlen enthalten"
        if not city:
            errors["city"] = "Ort ist erforderlich"
        if errors:
            raise ValidationFailed("Invalid delivery area", errors)

        session = self.session_factory()
        try:
            row = DeliveryAreaRow(plz=zip_code, city=city)
            session.add(row)
            session.commit()
            session.refresh(row)
            return DeliveryArea(id=str(row.id), zip_code=row.plz, city=row.city)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error adding delivery area: %s", e)
            raise PersistenceFailed("add_delivery_area", str(e)) from e
        finally:
            session.close()

    def delete_delivery_area(self, area_id: int) -> None:
        session = self.session_factory()
        try:
            rows = session.query(DeliveryAreaRow).filter(DeliveryAreaRow.id == area_id).delete(synchronize_session=False)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceFailed("delete_delivery_area", str(e)) from e
        finally:
            session.close()
        if rows == 0:
            raise NotFound(area_id, "Delivery area")
