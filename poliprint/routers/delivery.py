# poliprint/routers/delivery.py
from fastapi import APIRouter, Depends, Query

from poliprint.core.errors import StorefrontValidationError
from poliprint.schemas.delivery import (
    CitySearchResponse,
    DeliveryCalculationRequest,
    DeliveryCalculationResponse,
    TrackingResponse,
    WarehouseListResponse,
)
from poliprint.services.delivery_service import (
    DeliveryCarrier,
    calculate_delivery,
    get_delivery_carrier,
)

router = APIRouter(prefix="/np", tags=["Delivery"])

carrier = get_delivery_carrier()


def get_carrier() -> DeliveryCarrier:
    return carrier


@router.post("/calculate", response_model=DeliveryCalculationResponse)
def calculate(
    payload: DeliveryCalculationRequest,
    carrier: DeliveryCarrier = Depends(get_carrier),
):
    """
    Shipping cost quote.

    - 400 when citySender, cityRecipient, weight or cost is missing.
    - 500 when the carrier API fails or times out.
    """
    quote, params = calculate_delivery(carrier, payload)
    return DeliveryCalculationResponse(calculation=quote, parameters=params)


@router.get("/cities", response_model=CitySearchResponse)
def search_cities(
    q: str = "",
    limit: int = Query(default=20, ge=1, le=500),
    carrier: DeliveryCarrier = Depends(get_carrier),
):
    """
    City autocomplete for the checkout address step.
    """
    cities = carrier.search_cities(q, limit)
    return CitySearchResponse(query=q, limit=limit, cities=cities)


@router.get("/warehouses", response_model=WarehouseListResponse)
def list_warehouses(
    city: str = "Київ",
    city_ref: str | None = Query(default=None, alias="cityRef"),
    carrier: DeliveryCarrier = Depends(get_carrier),
):
    """
    Branches of a city, by ref if known, otherwise by city name.
    """
    warehouses = carrier.get_warehouses(city_ref, city)
    return WarehouseListResponse(city=city, city_ref=city_ref, warehouses=warehouses)


@router.get("/track", response_model=TrackingResponse)
def track_parcel(
    number: str | None = None,
    carrier: DeliveryCarrier = Depends(get_carrier),
):
    """
    Parcel status by Nova Poshta tracking number (TTN).
    """
    if not number or not number.strip():
        raise StorefrontValidationError(
            "Tracking number is required", error="Missing tracking number"
        )
    number = number.strip()
    return TrackingResponse(tracking_number=number, status=carrier.track(number))
