"""Map raw remote order payloads onto ImportRecords.

This is the only place that knows the remote system's field names. Payloads
may arrive in the API's own naming (``OrderId``, ``GeneralInfo.ReceivedDate``,
``Items[].SKU``) or in local snake_case naming (``order_id``,
``received_date``, ``items[].sku``); every fallback chain is declared once on
the pydantic models below. Null values fall through to the next alias and
finally to a neutral default.

Customer data (names, emails, phone numbers, addresses) is never declared on
these models, so it cannot reach storage even when the payload carries it.
"""

import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

import structlog
from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from order_sync.services.import_record import ImportRecord, freeze
from shared.constants import (
    DEFAULT_CURRENCY,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSED,
    REMOTE_STATUS_CODES,
    UNKNOWN_ITEM_TITLE,
)

logger = structlog.get_logger()

_MS_DATE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")


# =============================================================================
# Lenient coercion
# =============================================================================


def _strip_nulls(data: Any) -> Any:
    if isinstance(data, Mapping):
        return {k: _strip_nulls(v) for k, v in data.items() if v is not None}
    return data


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_optional_int(value: Any) -> Optional[int]:
    number = _to_int(value)
    return number or None


def _to_money(value: Any) -> float:
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return 0.0


def _to_optional_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a remote date into naive UTC.

    Unparseable values and sentinel dates on or before 1970 become None.
    """
    if value is None or value == "":
        return None

    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        match = _MS_DATE.match(text)
        try:
            if match:
                parsed = datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)
            else:
                parsed = datetime.fromisoformat(text)
        except (ValueError, OverflowError, OSError):
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if parsed.year <= 1970:
        return None
    return parsed


def _to_list(value: Any) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value) or None
    return [value]


Text = Annotated[Optional[str], BeforeValidator(_to_text)]
Count = Annotated[int, BeforeValidator(_to_int)]
OptionalCount = Annotated[Optional[int], BeforeValidator(_to_optional_int)]
Money = Annotated[float, BeforeValidator(_to_money)]
OptionalFloat = Annotated[Optional[float], BeforeValidator(_to_optional_float)]
Flag = Annotated[bool, BeforeValidator(_to_bool)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]
JsonList = Annotated[Optional[list], BeforeValidator(_to_list)]


def _alias(*choices: str | AliasPath) -> AliasChoices:
    return AliasChoices(*choices)


class _RemoteModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def drop_null_values(cls, data: Any) -> Any:
        return _strip_nulls(data)


# =============================================================================
# Remote payload models
# =============================================================================


class RemoteOrderItem(_RemoteModel):
    item_id: Text = Field(None, validation_alias=_alias("ItemId", "item_id"))
    stock_item_id: Text = Field(None, validation_alias=_alias("StockItemId", "stock_item_id"))
    row_id: Text = Field(None, validation_alias=_alias("RowId", "row_id"))
    sku: Text = Field(None, validation_alias=_alias("SKU", "sku"))
    title: Text = Field(None, validation_alias=_alias("Title", "ItemTitle", "item_title", "title"))
    channel_sku: Text = Field(None, validation_alias=_alias("ChannelSKU", "channel_sku"))
    channel_title: Text = Field(None, validation_alias=_alias("ChannelTitle", "channel_title"))
    category: Text = Field(
        None, validation_alias=_alias("CategoryName", "category_name", "category")
    )
    quantity: Count = Field(0, validation_alias=_alias("Quantity", "quantity"))
    unit_price: Money = Field(
        0.0, validation_alias=_alias("PricePerUnit", "price_per_unit", "unit_price")
    )
    line_total: Money = Field(
        0.0, validation_alias=_alias("Cost", "LineTotal", "line_total")
    )
    cost_price: Money = Field(
        0.0, validation_alias=_alias("UnitCost", "unit_cost", "cost_price")
    )
    discount: Money = Field(0.0, validation_alias=_alias("DiscountValue", "Discount", "discount"))
    tax: Money = Field(0.0, validation_alias=_alias("Tax", "tax"))
    tax_rate: Money = Field(0.0, validation_alias=_alias("TaxRate", "tax_rate"))
    weight: Money = Field(0.0, validation_alias=_alias("Weight", "weight"))
    is_service: Flag = Field(False, validation_alias=_alias("IsService", "is_service"))
    bin_rack: Text = Field(None, validation_alias=_alias("BinRack", "bin_rack"))
    composite_sub_items: JsonList = Field(
        None, validation_alias=_alias("CompositeSubItems", "composite_sub_items")
    )
    additional_info: JsonList = Field(
        None, validation_alias=_alias("AdditionalInfo", "additional_info")
    )
    added_at: Timestamp = Field(None, validation_alias=_alias("AddedDate", "added_date", "added_at"))

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["title"] = self.title or self.sku or UNKNOWN_ITEM_TITLE
        return row


class RemoteShipping(_RemoteModel):
    tracking_number: Text = Field(None, validation_alias=_alias("TrackingNumber", "tracking_number"))
    vendor: Text = Field(None, validation_alias=_alias("Vendor", "vendor"))
    postal_service_id: Text = Field(
        None, validation_alias=_alias("PostalServiceId", "postal_service_id")
    )
    postal_service_name: Text = Field(
        None, validation_alias=_alias("PostalServiceName", "postal_service_name")
    )
    total_weight: OptionalFloat = Field(None, validation_alias=_alias("TotalWeight", "total_weight"))
    item_weight: OptionalFloat = Field(None, validation_alias=_alias("ItemWeight", "item_weight"))
    package_category: Text = Field(
        None, validation_alias=_alias("PackageCategory", "package_category")
    )
    package_type: Text = Field(None, validation_alias=_alias("PackageType", "package_type"))
    postage_cost: OptionalFloat = Field(None, validation_alias=_alias("PostageCost", "postage_cost"))
    postage_cost_ex_tax: OptionalFloat = Field(
        None, validation_alias=_alias("PostageCostExTax", "postage_cost_ex_tax")
    )
    label_printed: Flag = Field(False, validation_alias=_alias("LabelPrinted", "label_printed"))
    label_error: Text = Field(None, validation_alias=_alias("LabelError", "label_error"))
    invoice_printed: Flag = Field(False, validation_alias=_alias("InvoicePrinted", "invoice_printed"))
    pick_list_printed: Flag = Field(
        False, validation_alias=_alias("PickListPrinted", "pick_list_printed")
    )
    partial_shipped: Flag = Field(False, validation_alias=_alias("PartialShipped", "partial_shipped"))
    manual_adjust: Flag = Field(False, validation_alias=_alias("ManualAdjust", "manual_adjust"))


class RemoteNote(_RemoteModel):
    remote_note_id: Text = Field(None, validation_alias=_alias("NoteId", "note_id", "remote_note_id"))
    note_text: str = Field("", validation_alias=_alias("Note", "note_text", "note"))
    note_date: Timestamp = Field(
        None, validation_alias=_alias("NoteDate", "NoteDateTime", "note_date")
    )
    is_internal: Flag = Field(False, validation_alias=_alias("IsInternal", "is_internal"))
    created_by: Text = Field(None, validation_alias=_alias("CreatedBy", "created_by", "noted_by"))


class RemoteProperty(_RemoteModel):
    property_type: str = Field("", validation_alias=_alias("PropertyType", "property_type"))
    property_name: str = Field("", validation_alias=_alias("PropertyName", "property_name"))
    property_value: str = Field("", validation_alias=_alias("PropertyValue", "property_value"))

    @field_validator("property_type", "property_name", "property_value", mode="before")
    @classmethod
    def as_string(cls, v: Any) -> str:
        return "" if v is None else str(v)


class RemoteIdentifier(_RemoteModel):
    identifier_id: Count = Field(
        0, validation_alias=_alias("OrderIdentifierId", "IdentifierId", "identifier_id")
    )
    tag: Text = Field(None, validation_alias=_alias("Tag", "tag"))
    name: Text = Field(None, validation_alias=_alias("TagDisplayText", "name"))
    is_custom: Flag = Field(False, validation_alias=_alias("IsCustom", "is_custom"))


class RemoteOrder(_RemoteModel):
    """Order payload as returned by the remote API (or its local mirror)."""

    remote_order_id: Text = Field(
        None, validation_alias=_alias("OrderId", "pkOrderID", "order_id", "remote_order_id")
    )
    order_number: OptionalCount = Field(
        None,
        validation_alias=_alias("NumOrderId", "ReferenceNum", "nOrderId", "order_number"),
    )

    received_date: Timestamp = Field(
        None,
        validation_alias=_alias(
            AliasPath("GeneralInfo", "ReceivedDate"), "dReceivedDate", "received_date"
        ),
    )
    processed_date: Timestamp = Field(
        None,
        validation_alias=_alias(
            "dProcessedOn",
            "ProcessedDate",
            "dProcessedDate",
            AliasPath("GeneralInfo", "ProcessedDate"),
            AliasPath("GeneralInfo", "dProcessedDate"),
            "processed_date",
        ),
    )
    processed_flag: Flag = Field(
        False,
        validation_alias=_alias(
            "Processed",
            "bProcessed",
            AliasPath("GeneralInfo", "Processed"),
            AliasPath("GeneralInfo", "bProcessed"),
            "is_processed",
        ),
    )
    paid_date: Timestamp = Field(
        None, validation_alias=_alias("PaidDateTime", "PaidDate", "dPaidDate", "paid_date")
    )
    despatch_by_date: Timestamp = Field(
        None,
        validation_alias=_alias(
            AliasPath("GeneralInfo", "DespatchByDate"), "DespatchByDate", "despatch_by_date"
        ),
    )

    source: Text = Field(
        None, validation_alias=_alias(AliasPath("GeneralInfo", "Source"), "Source", "order_source", "source")
    )
    subsource: Text = Field(
        None, validation_alias=_alias(AliasPath("GeneralInfo", "SubSource"), "SubSource", "subsource")
    )
    channel_reference_number: Text = Field(
        None,
        validation_alias=_alias(AliasPath("GeneralInfo", "ReferenceNum"), "channel_reference_number"),
    )
    secondary_reference: Text = Field(
        None,
        validation_alias=_alias(AliasPath("GeneralInfo", "SecondaryReference"), "secondary_reference"),
    )
    external_reference: Text = Field(
        None,
        validation_alias=_alias(
            AliasPath("GeneralInfo", "ExternalReferenceNum"),
            "external_reference_num",
            "external_reference",
        ),
    )
    location_id: Text = Field(
        None, validation_alias=_alias("FulfilmentLocationId", "fkOrderLocationID", "location_id")
    )

    currency: Text = Field(
        None, validation_alias=_alias(AliasPath("TotalsInfo", "Currency"), "cCurrency", "currency")
    )
    total_charge: Money = Field(
        0.0,
        validation_alias=_alias(AliasPath("TotalsInfo", "TotalCharge"), "fTotalCharge", "total_charge"),
    )
    total_discount: Money = Field(
        0.0, validation_alias=_alias(AliasPath("TotalsInfo", "TotalDiscount"), "total_discount")
    )
    postage_cost: Money = Field(
        0.0,
        validation_alias=_alias(AliasPath("TotalsInfo", "PostageCost"), "fPostageCost", "postage_cost"),
    )
    postage_cost_ex_tax: Money = Field(
        0.0,
        validation_alias=_alias(AliasPath("TotalsInfo", "PostageCostExTax"), "postage_cost_ex_tax"),
    )
    tax: Money = Field(0.0, validation_alias=_alias(AliasPath("TotalsInfo", "Tax"), "fTax", "tax"))
    profit_margin: Money = Field(
        0.0,
        validation_alias=_alias(AliasPath("TotalsInfo", "ProfitMargin"), "ProfitMargin", "profit_margin"),
    )
    country_tax_rate: OptionalFloat = Field(
        None, validation_alias=_alias(AliasPath("TotalsInfo", "CountryTaxRate"), "country_tax_rate")
    )
    conversion_rate: OptionalFloat = Field(
        None, validation_alias=_alias(AliasPath("TotalsInfo", "ConversionRate"), "conversion_rate")
    )
    payment_method: Text = Field(
        None,
        validation_alias=_alias(
            AliasPath("TotalsInfo", "PaymentMethod"),
            AliasPath("GeneralInfo", "PaymentMethod"),
            "PaymentMethod",
            "payment_method",
        ),
    )
    payment_method_id: Text = Field(
        None, validation_alias=_alias(AliasPath("TotalsInfo", "PaymentMethodId"), "payment_method_id")
    )

    status_code: Count = Field(
        0, validation_alias=_alias(AliasPath("GeneralInfo", "Status"), "nStatus", "order_status", "status_code")
    )
    is_cancelled: Flag = Field(
        False,
        validation_alias=_alias(AliasPath("GeneralInfo", "HoldOrCancel"), "HoldOrCancel", "is_cancelled"),
    )
    marker: Count = Field(0, validation_alias=_alias(AliasPath("GeneralInfo", "Marker"), "Marker", "marker"))
    is_parked: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "IsParked"), "IsParked", "is_parked")
    )
    label_printed: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "LabelPrinted"), "label_printed")
    )
    label_error: Text = Field(
        None, validation_alias=_alias(AliasPath("GeneralInfo", "LabelError"), "label_error")
    )
    invoice_printed: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "InvoicePrinted"), "invoice_printed")
    )
    pick_list_printed: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "PickListPrinted"), "pick_list_printed")
    )
    is_rule_run: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "IsRuleRun"), "is_rule_run")
    )
    part_shipped: Flag = Field(
        False, validation_alias=_alias(AliasPath("GeneralInfo", "PartShipped"), "part_shipped")
    )
    has_scheduled_delivery: Flag = Field(
        False,
        validation_alias=_alias(AliasPath("GeneralInfo", "HasScheduledDelivery"), "has_scheduled_delivery"),
    )
    pickwave_ids: JsonList = Field(
        None, validation_alias=_alias(AliasPath("GeneralInfo", "PickwaveIds"), "pickwave_ids")
    )

    items: list[RemoteOrderItem] = Field(default_factory=list, validation_alias=_alias("Items", "items"))
    shipping: Optional[RemoteShipping] = Field(
        None, validation_alias=_alias("ShippingInfo", "shipping")
    )
    notes: list[RemoteNote] = Field(default_factory=list, validation_alias=_alias("Notes", "notes"))
    properties: list[RemoteProperty] = Field(
        default_factory=list,
        validation_alias=_alias("ExtendedProperties", "extended_properties", "properties"),
    )
    identifiers: list[RemoteIdentifier] = Field(
        default_factory=list,
        validation_alias=_alias("OrderIdentifiers", "identifiers"),
    )

    @field_validator("shipping", mode="before")
    @classmethod
    def empty_shipping_is_none(cls, v: Any) -> Any:
        return v or None

    @property
    def effective_processed_date(self) -> Optional[datetime]:
        """Explicit processed date, else the received date for orders flagged processed."""
        if self.processed_date is not None:
            return self.processed_date
        if self.processed_flag:
            return self.received_date
        return None

    @property
    def is_processed(self) -> bool:
        return self.processed_flag or self.processed_date is not None

    @property
    def status(self) -> str:
        if self.is_processed:
            return ORDER_STATUS_PROCESSED
        return REMOTE_STATUS_CODES.get(self.status_code, ORDER_STATUS_PENDING)


# =============================================================================
# Normalization
# =============================================================================


def normalize_channel(name: Optional[str]) -> Optional[str]:
    """'Amazon UK' -> 'amazon_uk'."""
    if not name:
        return None
    return name.replace(" ", "_").lower()


def _coerce(raw: Any) -> RemoteOrder:
    if isinstance(raw, RemoteOrder):
        return raw
    if isinstance(raw, Mapping):
        return RemoteOrder.model_validate(raw)
    if isinstance(raw, BaseModel):
        return RemoteOrder.model_validate(raw.model_dump())
    return RemoteOrder.model_validate(vars(raw))


def order_attributes(order: RemoteOrder, default_currency: str = DEFAULT_CURRENCY) -> dict[str, Any]:
    """Local ``orders`` columns for a remote order (bookkeeping columns excluded)."""
    is_processed = order.is_processed
    return {
        "remote_order_id": order.remote_order_id,
        "order_number": order.order_number,
        "channel": normalize_channel(order.source),
        "source": order.source,
        "subsource": order.subsource,
        "channel_reference_number": order.channel_reference_number,
        "secondary_reference": order.secondary_reference,
        "external_reference": order.external_reference,
        "location_id": order.location_id,
        "received_at": order.received_date,
        "processed_at": order.effective_processed_date,
        "paid_at": order.paid_date,
        "despatch_by_at": order.despatch_by_date,
        "currency": (order.currency or default_currency).upper(),
        "total_charge": order.total_charge,
        # The remote system reports no separate paid amount.
        "total_paid": order.total_charge,
        "total_discount": order.total_discount,
        "postage_cost": order.postage_cost,
        "postage_cost_ex_tax": order.postage_cost_ex_tax,
        "tax": order.tax,
        "country_tax_rate": order.country_tax_rate,
        "conversion_rate": order.conversion_rate if order.conversion_rate is not None else 1.0,
        "profit_margin": order.profit_margin,
        "status": order.status,
        "status_code": order.status_code,
        "is_open": not is_processed,
        "is_processed": is_processed,
        "is_paid": order.paid_date is not None or order.status_code == 1,
        "is_cancelled": order.is_cancelled,
        "marker": order.marker,
        "is_parked": order.is_parked,
        "label_printed": order.label_printed,
        "label_error": order.label_error,
        "invoice_printed": order.invoice_printed,
        "pick_list_printed": order.pick_list_printed,
        "is_rule_run": order.is_rule_run,
        "part_shipped": order.part_shipped,
        "has_scheduled_delivery": order.has_scheduled_delivery,
        "pickwave_ids": order.pickwave_ids,
        "num_items": sum(item.quantity for item in order.items),
        "payment_method": order.payment_method,
        "payment_method_id": order.payment_method_id,
    }


def to_import_record(order: RemoteOrder, default_currency: str = DEFAULT_CURRENCY) -> Optional[ImportRecord]:
    """Build the ImportRecord for a parsed order, or None without an identity."""
    if not order.remote_order_id and order.order_number is None:
        return None

    return ImportRecord(
        remote_order_id=order.remote_order_id,
        order_number=order.order_number,
        is_processed=order.is_processed,
        attributes=freeze(order_attributes(order, default_currency)),
        items=tuple(freeze(item.to_row()) for item in order.items),
        shipping=freeze(order.shipping.model_dump()) if order.shipping else None,
        notes=tuple(freeze(note.model_dump()) for note in order.notes),
        properties=tuple(freeze(prop.model_dump()) for prop in order.properties),
        identifiers=tuple(
            freeze(identifier.model_dump()) for identifier in order.identifiers if identifier.tag
        ),
    )


def normalize_order(raw: Any, default_currency: str = DEFAULT_CURRENCY) -> Optional[ImportRecord]:
    """Normalize one raw payload; None when it cannot be mapped."""
    try:
        order = _coerce(raw)
    except (ValidationError, TypeError) as e:
        logger.debug("Dropping unmappable order payload", error=str(e))
        return None
    return to_import_record(order, default_currency)


def normalize_orders(
    raw_orders: Iterable[Any], default_currency: str = DEFAULT_CURRENCY
) -> list[ImportRecord]:
    """Normalize a page of raw payloads, dropping those without an identity."""
    records = []
    for raw in raw_orders:
        record = normalize_order(raw, default_currency)
        if record is not None:
            records.append(record)
    return records
