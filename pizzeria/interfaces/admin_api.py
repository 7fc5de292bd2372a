from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Request, Response

from pizzeria.domain.models import DeliveryArea, Discount
from pizzeria.interfaces.schemas import (
    DeliveryAreaIn,
    DeliveryAreaOut,
    PromotionIn,
    PromotionOut,
    PromotionPatch,
)

router = APIRouter(prefix="/admin")


def _promotion_out(discount: Discount) -> PromotionOut:
    return PromotionOut(
        id=discount.id,
        name=discount.name,
        percentage=float(discount.percentage),
        start_date=discount.start_date,
        end_date=discount.end_date,
        enabled=discount.enabled,
    )


def _area_out(area: DeliveryArea) -> DeliveryAreaOut:
    return DeliveryAreaOut(id=area.id, zip=area.zip_code, city=area.city)


# --- Promotions ---

@router.get("/promotions", response_model=List[PromotionOut])
def list_promotions(request: Request):
    return [_promotion_out(d) for d in request.app.state.settings_repo.list_discounts()]


@router.post("/promotions", response_model=PromotionOut, status_code=201)
def create_promotion(payload: PromotionIn, request: Request):
    discount = request.app.state.settings_repo.create_discount(
        name=payload.name,
        percentage=payload.percentage,
        start_date=payload.start_date,
        end_date=payload.end_date,
        enabled=payload.enabled,
    )
    return _promotion_out(discount)


@router.patch("/promotions/{promotion_id}", response_model=PromotionOut)
def update_promotion(promotion_id: int, payload: PromotionPatch, request: Request):
    # Only the fields actually sent; an explicit null clears a date.
    changes = payload.model_dump(exclude_unset=True)
    discount = request.app.state.settings_repo.update_discount(promotion_id, **changes)
    return _promotion_out(discount)


@router.delete("/promotions/{promotion_id}", status_code=204)
def delete_promotion(promotion_id: int, request: Request):
    request.app.state.settings_repo.delete_discount(promotion_id)
    return Response(status_code=204)


# --- Delivery areas ---

@router.get("/delivery-areas", response_model=List[DeliveryAreaOut])
def list_delivery_areas(request: Request):
    return [_area_out(a) for a in request.app.state.settings_repo.list_delivery_areas()]


@router.post("/delivery-areas", response_model=DeliveryAreaOut, status_code=201)
def add_delivery_area(payload: DeliveryAreaIn, request: Request):
    return _area_out(request.app.state.settings_repo.add_delivery_area(payload.zip, payload.city))


@router.delete("/delivery-areas/{area_id}", status_code=204)
def delete_delivery_area(area_id: int, request: Request):
    request.app.state.settings_repo.delete_delivery_area(area_id)
    return Response(status_code=204)


# --- Key/value settings ---

@router.get("/settings", response_model=Dict[str, Optional[str]])
def get_settings(request: Request):
    return request.app.state.settings_repo.get_settings()


@router.patch("/settings", response_model=Dict[str, Optional[str]])
def update_settings(payload: Dict[str, Union[str, float, int, bool, None]], request: Request):
    return request.app.state.settings_repo.update_settings(payload)
