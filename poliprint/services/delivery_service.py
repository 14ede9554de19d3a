# poliprint/services/delivery_service.py
import logging
import zlib
from typing import Any, Protocol

from poliprint.core.config import Settings, get_settings
from poliprint.core.errors import StorefrontValidationError, UpstreamServiceError
from poliprint.core.novaposhta_client import NovaPoshtaClient
from poliprint.schemas.delivery import (
    City,
    DeliveryCalculationRequest,
    DeliveryParameters,
    DeliveryQuote,
    TrackingStatus,
    Warehouse,
)

logger = logging.getLogger(__name__)

# Fallback tariff (UAH)
BASE_DELIVERY_PRICE = 45.0
FREE_WEIGHT_KG = 2.0
PRICE_PER_EXTRA_KG = 5.0
DOOR_DELIVERY_SURCHARGE = 20.0
PACKAGING_PRICE = 5.0
FALLBACK_ZONE = "1"

DELIVERED_STATUSES = {"Видана отримувачу", "Delivered"}


class DeliveryCarrier(Protocol):
    """
    Everything the storefront needs from a shipping carrier.
    """

    def calculate(self, params: DeliveryParameters) -> DeliveryQuote: ...

    def search_cities(self, query: str, limit: int) -> list[City]: ...

    def get_warehouses(self, city_ref: str | None, city_name: str) -> list[Warehouse]: ...

    def track(self, tracking_number: str) -> TrackingStatus: ...


def validate_calculation_request(payload: DeliveryCalculationRequest) -> DeliveryParameters:
    """
    citySender, cityRecipient, weight and cost are required.

    Like the storefront form, zero weight or zero declared cost count as
    missing.

    Raises:
        StorefrontValidationError: before any calculation happens.
    """
    missing = [
        name
        for name, value in (
            ("citySender", (payload.city_sender or "").strip()),
            ("cityRecipient", (payload.city_recipient or "").strip()),
            ("weight", payload.weight),
            ("cost", payload.cost),
        )
        if not value
    ]
    if missing:
        raise StorefrontValidationError(
            "citySender, cityRecipient, weight, and cost are required "
            f"(missing: {', '.join(missing)})"
        )

    return DeliveryParameters(
        city_sender=payload.city_sender.strip(),
        city_recipient=payload.city_recipient.strip(),
        weight=payload.weight,
        service_type=payload.service_type,
        cost=payload.cost,
        cargo_type=payload.cargo_type,
        seats_amount=payload.seats_amount,
    )


def fallback_delivery_cost(weight: float, service_type: str) -> float:
    """
    45 base, +5 per kg above 2 kg, +20 when a door is involved.
    """
    extra_weight = max(0.0, weight - FREE_WEIGHT_KG) * PRICE_PER_EXTRA_KG
    door = DOOR_DELIVERY_SURCHARGE if "Doors" in service_type else 0.0
    return round(BASE_DELIVERY_PRICE + extra_weight + door, 2)


def _to_float(value: Any, default: float = 0.0) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise UpstreamServiceError(f"Unexpected amount in carrier response: {value!r}")


# ---------------------------------------------------------------------------
# Fallback carrier: deterministic, no network
# ---------------------------------------------------------------------------

_WORKDAY = "08:00-21:00"
_WEEKEND = "09:00-18:00"

FALLBACK_CITIES: list[City] = [
    City(ref="kyiv-ref", name="Київ", name_ru="Киев", area="kyiv-area",
         area_description="Київська область", region="kyiv-region",
         region_description="Київська область"),
    City(ref="kharkiv-ref", name="Харків", name_ru="Харьков", area="kharkiv-area",
         area_description="Харківська область", region="kharkiv-region",
         region_description="Харківська область"),
    City(ref="odesa-ref", name="Одеса", name_ru="Одесса", area="odesa-area",
         area_description="Одеська область", region="odesa-region",
         region_description="Одеська область"),
    City(ref="lviv-ref", name="Львів", name_ru="Львов", area="lviv-area",
         area_description="Львівська область", region="lviv-region",
         region_description="Львівська область"),
    City(ref="dnipro-ref", name="Дніпро", name_ru="Днепр", area="dnipro-area",
         area_description="Дніпропетровська область", region="dnipro-region",
         region_description="Дніпропетровська область"),
]

FALLBACK_WAREHOUSES: list[Warehouse] = [
    Warehouse(
        ref="warehouse-1",
        site_key="1",
        number="1",
        description="Відділення №1: вул. Хрещатик, 1",
        short_address="вул. Хрещатик, 1",
        phone="0800-500-609",
        type_of_warehouse="Office",
        schedule={
            "Monday": _WORKDAY, "Tuesday": _WORKDAY, "Wednesday": _WORKDAY,
            "Thursday": _WORKDAY, "Friday": _WORKDAY,
            "Saturday": _WEEKEND, "Sunday": _WEEKEND,
        },
    ),
    Warehouse(
        ref="warehouse-2",
        site_key="2",
        number="2",
        description="Відділення №2: вул. Дмитрівська, 10",
        short_address="вул. Дмитрівська, 10",
        phone="0800-500-609",
        type_of_warehouse="Office",
        schedule={
            "Monday": _WORKDAY, "Tuesday": _WORKDAY, "Wednesday": _WORKDAY,
            "Thursday": _WORKDAY, "Friday": _WORKDAY,
            "Saturday": _WEEKEND, "Sunday": "Вихідний",
        },
    ),
]

FALLBACK_TRACKING_STATUSES = [
    "Створена",
    "Відправлена з міста відправника",
    "Прибула до міста отримувача",
    "Готова до отримання",
    "Видана отримувачу",
]


class FallbackCarrier:
    """
    Used when no Nova Poshta API key is configured.

    Same input, same output: prices come from the fixed tariff, tracking
    status is derived from a checksum of the tracking number.
    """

    def calculate(self, params: DeliveryParameters) -> DeliveryQuote:
        delivery_cost = fallback_delivery_cost(params.weight, params.service_type)
        return DeliveryQuote(
            assessed_cost=params.cost,
            delivery_cost=delivery_cost,
            redelivery_cost=0.0,
            packaging_cost=PACKAGING_PRICE,
            zone=FALLBACK_ZONE,
            total_cost=round(delivery_cost + PACKAGING_PRICE, 2),
        )

    def search_cities(self, query: str, limit: int) -> list[City]:
        needle = query.strip().lower()
        matches = [
            city
            for city in FALLBACK_CITIES
            if needle in city.name.lower() or needle in (city.name_ru or "").lower()
        ]
        return matches[:limit]

    def get_warehouses(self, city_ref: str | None, city_name: str) -> list[Warehouse]:
        return list(FALLBACK_WAREHOUSES)

    def track(self, tracking_number: str) -> TrackingStatus:
        index = zlib.crc32(tracking_number.encode("utf-8")) % len(FALLBACK_TRACKING_STATUSES)
        status = FALLBACK_TRACKING_STATUSES[index]
        return TrackingStatus(
            number=tracking_number,
            status=status,
            status_code=str(index + 1),
            date_created="2024-12-20",
            city_sender="Київ",
            city_recipient="Харків",
            warehouse_recipient="Відділення №15",
            actual_delivery_date="2024-12-21" if status in DELIVERED_STATUSES else None,
            recipient_full_name="Іваненко Марія Петрівна",
            phone="+380991234567",
            is_delivered=status in DELIVERED_STATUSES,
        )


# ---------------------------------------------------------------------------
# Nova Poshta carrier: maps API records into storefront schemas
# ---------------------------------------------------------------------------


class NovaPoshtaCarrier:
    def __init__(self, client: NovaPoshtaClient):
        self.client = client

    def calculate(self, params: DeliveryParameters) -> DeliveryQuote:
        raw = self.client.get_document_price(
            city_sender=params.city_sender,
            city_recipient=params.city_recipient,
            weight=params.weight,
            service_type=params.service_type,
            cost=params.cost,
            cargo_type=params.cargo_type,
            seats_amount=params.seats_amount,
        )
        delivery_cost = _to_float(raw.get("Cost"))
        packaging_cost = _to_float(raw.get("CostPack"))
        zone = raw.get("TZone")
        return DeliveryQuote(
            assessed_cost=_to_float(raw.get("AssessedCost"), default=params.cost),
            delivery_cost=delivery_cost,
            redelivery_cost=_to_float(raw.get("CostRedelivery")),
            packaging_cost=packaging_cost,
            zone=str(zone) if zone is not None else None,
            total_cost=round(delivery_cost + packaging_cost, 2),
        )

    @staticmethod
    def _city_from_record(record: dict[str, Any]) -> City:
        # getCities records vs searchSettlements "Addresses" records
        if "MainDescription" in record:
            return City(
                ref=record.get("DeliveryCity") or record.get("Ref", ""),
                name=record.get("MainDescription", ""),
                area=record.get("Area"),
                area_description=record.get("Area"),
                region=record.get("Region"),
                region_description=record.get("Region"),
            )
        return City(
            ref=record.get("Ref", ""),
            name=record.get("Description", ""),
            name_ru=record.get("DescriptionRu"),
            area=record.get("Area"),
            area_description=record.get("AreaDescription"),
            region=record.get("Region"),
            region_description=record.get("RegionDescription"),
        )

    def search_cities(self, query: str, limit: int) -> list[City]:
        if query.strip():
            records = self.client.search_settlements(query.strip(), limit)
        else:
            records = self.client.get_cities()
        return [self._city_from_record(r) for r in records[:limit]]

    def get_warehouses(self, city_ref: str | None, city_name: str) -> list[Warehouse]:
        if not city_ref:
            cities = self.client.search_settlements(city_name, 1)
            if not cities:
                raise UpstreamServiceError(f"City not found: {city_name}")
            city_ref = self._city_from_record(cities[0]).ref

        return [
            Warehouse(
                ref=r.get("Ref", ""),
                site_key=r.get("SiteKey"),
                number=r.get("Number"),
                description=r.get("Description", ""),
                short_address=r.get("ShortAddress"),
                phone=r.get("Phone"),
                type_of_warehouse=r.get("TypeOfWarehouse"),
                schedule=r.get("Schedule") or {},
            )
            for r in self.client.get_warehouses(city_ref)
        ]

    def track(self, tracking_number: str) -> TrackingStatus:
        records = self.client.track_document(tracking_number)
        if not records:
            raise UpstreamServiceError(f"No tracking data for {tracking_number}")
        r = records[0]
        status = r.get("Status") or ""
        return TrackingStatus(
            number=r.get("Number") or tracking_number,
            status=status,
            status_code=r.get("StatusCode"),
            date_created=r.get("DateCreated"),
            city_sender=r.get("CitySender"),
            city_recipient=r.get("CityRecipient"),
            warehouse_recipient=r.get("WarehouseRecipient"),
            actual_delivery_date=r.get("ActualDeliveryDate") or None,
            recipient_full_name=r.get("RecipientFullName"),
            phone=r.get("Phone") or r.get("PhoneRecipient"),
            is_delivered=status in DELIVERED_STATUSES,
        )


def get_delivery_carrier(settings: Settings | None = None) -> DeliveryCarrier:
    """
    Choose the carrier adapter once, from configuration.
    """
    settings = settings or get_settings()
    if settings.nova_poshta_enabled:
        return NovaPoshtaCarrier(
            NovaPoshtaClient(
                api_key=settings.NOVA_POSHTA_API_KEY,
                api_url=settings.NOVA_POSHTA_API_URL,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            )
        )
    logger.info("NOVA_POSHTA_API_KEY not configured, using fallback carrier")
    return FallbackCarrier()


def calculate_delivery(
    carrier: DeliveryCarrier,
    payload: DeliveryCalculationRequest,
) -> tuple[DeliveryQuote, DeliveryParameters]:
    """
    Validate then quote. Validation errors never reach the carrier.
    """
    params = validate_calculation_request(payload)
    quote = carrier.calculate(params)
    logger.info(
        "Delivery quote %s -> %s (%.2f kg, %s): %.2f",
        params.city_sender,
        params.city_recipient,
        params.weight,
        params.service_type,
        quote.total_cost,
    )
    return quote, params
