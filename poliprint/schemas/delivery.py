# poliprint/schemas/delivery.py
from typing import Literal

from pydantic import Field

from poliprint.schemas.common import CamelModel

ServiceType = Literal[
    "WarehouseWarehouse",
    "WarehouseDoors",
    "DoorsWarehouse",
    "DoorsDoors",
]

DEFAULT_SERVICE_TYPE: ServiceType = "WarehouseWarehouse"
DEFAULT_CARGO_TYPE = "Parcel"


class DeliveryCalculationRequest(CamelModel):
    """
    Raw body of POST /np/calculate.

    Required fields are optional here on purpose: their absence is reported
    by the service as a 400 with the storefront error body.
    """

    city_sender: str | None = None
    city_recipient: str | None = None
    weight: float | None = Field(default=None, ge=0)
    cost: float | None = Field(default=None, ge=0)
    service_type: ServiceType = DEFAULT_SERVICE_TYPE
    cargo_type: str = DEFAULT_CARGO_TYPE
    seats_amount: int = Field(default=1, ge=1)


class DeliveryParameters(CamelModel):
    """
    Validated calculation inputs (echoed back as `parameters`).
    """

    city_sender: str
    city_recipient: str
    weight: float
    service_type: ServiceType
    cost: float
    cargo_type: str
    seats_amount: int


class DeliveryQuote(CamelModel):
    assessed_cost: float
    delivery_cost: float
    redelivery_cost: float = 0.0
    packaging_cost: float = 0.0
    zone: str | None = None
    total_cost: float


class DeliveryCalculationResponse(CamelModel):
    success: bool = True
    calculation: DeliveryQuote
    parameters: DeliveryParameters


class City(CamelModel):
    ref: str
    name: str
    name_ru: str | None = None
    area: str | None = None
    area_description: str | None = None
    region: str | None = None
    region_description: str | None = None


class CitySearchResponse(CamelModel):
    success: bool = True
    query: str
    limit: int
    cities: list[City]


class Warehouse(CamelModel):
    ref: str
    site_key: str | None = None
    number: str | None = None
    description: str
    short_address: str | None = None
    phone: str | None = None
    type_of_warehouse: str | None = None
    schedule: dict[str, str] = Field(default_factory=dict)


class WarehouseListResponse(CamelModel):
    success: bool = True
    city: str
    city_ref: str | None = None
    warehouses: list[Warehouse]


class TrackingStatus(CamelModel):
    number: str
    status: str
    status_code: str | None = None
    date_created: str | None = None
    city_sender: str | None = None
    city_recipient: str | None = None
    warehouse_recipient: str | None = None
    actual_delivery_date: str | None = None
    recipient_full_name: str | None = None
    phone: str | None = None
    is_delivered: bool = False


class TrackingResponse(CamelModel):
    success: bool = True
    tracking_number: str
    status: TrackingStatus
