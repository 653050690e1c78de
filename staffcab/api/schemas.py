"""
API request/response schemas. Pydantic only in api layer.
Responses are built from domain dataclasses (from_attributes).
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Addresses / bookings ---


class ZoneSchema(_FromDomain):
    id: str = ""
    name: str = ""


class AddressSchema(_FromDomain):
    formatted: str
    lat: float
    lng: float
    text: str = ""
    place_id: Optional[str] = None
    house_number: str = ""
    street: str = ""
    town: str = "Plymouth"
    post_code: str = ""
    zone: Optional[ZoneSchema] = None


class AddressInput(BaseModel):
    """Address as picked in the browser. lat/lng may arrive as strings."""
    formatted: Optional[str] = None
    text: Optional[str] = None
    description: Optional[str] = None
    place_id: Optional[str] = None
    house_number: Optional[str] = None
    street: Optional[str] = None
    town: Optional[str] = None
    post_code: Optional[str] = None
    lat: Optional[Union[float, str]] = None
    lng: Optional[Union[float, str]] = None
    zone: Optional[ZoneSchema] = None


class AuditEntrySchema(_FromDomain):
    at: str
    actor_type: str
    source: str
    action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    details: Optional[dict] = None


class BookingSchema(_FromDomain):
    id: str
    ward_name: str
    ward_phone: str
    staff_name: str
    staff_phone: str
    shift_type: str
    on_off_duty_time: str
    pickup_date_iso: str
    pickup: AddressSchema
    destination: AddressSchema
    reason_code: str
    budget_number: str
    budget_holder_name: str
    reference: str
    status: str
    short_ref: Optional[str] = None
    require_return: bool = False
    return_date_iso: Optional[str] = None
    is_return: bool = False
    budget_holder_signature_data_url: Optional[str] = None
    decline_reason: str = ""
    manual_flag_label: Optional[str] = None
    manual_flag_reason: Optional[str] = None
    created_at: str = ""
    confirmed_by_staff_at: Optional[str] = None
    confirmed_by_staff_source: Optional[str] = None
    updated_by_staff_at: Optional[str] = None
    updated_by_staff_source: Optional[str] = None
    updated_by_staff_summary: Optional[str] = None
    cancelled_by_staff_at: Optional[str] = None
    cancelled_by_staff_reason: Optional[str] = None
    cancelled: bool = False
    cancelled_by: str = ""
    cancelled_at: Optional[str] = None
    cancel_reason: Optional[str] = None
    last_customer_action: str = ""
    last_customer_action_at: Optional[str] = None
    last_customer_action_source: Optional[str] = None
    last_customer_action_summary: Optional[str] = None
    last_sms_at: Optional[str] = None
    last_sms_source: Optional[str] = None
    last_sms_purpose: Optional[str] = None
    last_sms_message_preview: Optional[str] = None
    sms_count: int = 0
    audit_log: list[AuditEntrySchema] = []


class PublicBookingSchema(_FromDomain):
    """Fields the staff self-service page may see."""
    id: str
    pickup_date_iso: str
    on_off_duty_time: str
    shift_type: str
    ward_name: str
    staff_name: str
    staff_phone: str
    reference: str
    short_ref: Optional[str] = None
    pickup: AddressSchema
    destination: AddressSchema
    status: str
    require_return: bool = False
    manual_flag_label: Optional[str] = None
    manual_flag_reason: Optional[str] = None
    updated_by_staff_at: Optional[str] = None
    cancelled_by_staff_at: Optional[str] = None


class BookingCreateRequest(BaseModel):
    # Required fields default to "" so the booking rules report which one is missing
    ward_name: str = ""
    ward_phone: str = ""
    staff_name: str = ""
    staff_phone: str = ""
    shift_type: str = ""
    on_off_duty_time: str = ""
    pickup_date_iso: str = ""
    pickup: Optional[AddressInput] = None
    destination: Optional[AddressInput] = None
    reason_code: str = ""
    budget_number: str = ""
    budget_holder_name: str = ""
    budget_holder_signature_data_url: Optional[str] = None
    require_return: bool = False
    return_date_iso: Optional[str] = None
    return_on_off_duty_time: Optional[str] = None


class BookingResponse(BaseModel):
    ok: bool = True
    booking: BookingSchema


class BookingCreateResponse(BaseModel):
    ok: bool = True
    booking: BookingSchema
    return_booking: Optional[BookingSchema] = None


class BookingPageSchema(BaseModel):
    ok: bool = True
    total: int
    page: int
    limit: int
    pages: int
    items: list[BookingSchema]


class BookingUpdateRequest(BaseModel):
    ward_name: Optional[str] = None
    ward_phone: Optional[str] = None
    staff_name: Optional[str] = None
    staff_phone: Optional[str] = None
    shift_type: Optional[str] = None
    on_off_duty_time: Optional[str] = None
    pickup_date_iso: Optional[str] = None
    reason_code: Optional[str] = None
    budget_number: Optional[str] = None
    budget_holder_name: Optional[str] = None
    status: Optional[str] = None
    manual_flag_label: Optional[str] = None
    manual_flag_reason: Optional[str] = None
    pickup: Optional[dict[str, Any]] = None
    destination: Optional[dict[str, Any]] = None


class DeclineRequest(BaseModel):
    reason: Optional[str] = None


class CustomerUpdateRequest(BaseModel):
    pickup_date_iso: Optional[str] = None
    on_off_duty_time: Optional[str] = None
    staff_phone: Optional[str] = None
    pickup: Optional[AddressInput] = None
    destination: Optional[AddressInput] = None
    pickup_text: Optional[str] = None
    pickup_post_code: Optional[str] = None
    destination_text: Optional[str] = None
    destination_post_code: Optional[str] = None


class CustomerCancelRequest(BaseModel):
    reason: Optional[str] = None


class DeletedResponse(BaseModel):
    ok: bool = True
    deleted_id: str


class BookingLogSchema(_FromDomain):
    id: str
    booking_id: str
    type: str
    phone: str
    message: str
    sms_status: dict
    meta: dict
    created_at: str


class BookingLogsResponse(BaseModel):
    ok: bool = True
    items: list[BookingLogSchema]


# --- SMS ---


class SendSmsRequest(BaseModel):
    to: str = ""
    message: str = ""
    source: Optional[str] = None
    booking_id: Optional[str] = None


class BookingSmsRequest(BaseModel):
    message: str = ""
    phone_source: str = "staff"
    template: str = ""  # "approve" | "decline" when message is empty
    reason: Optional[str] = None


class SendEditLinkRequest(BaseModel):
    reason: str = ""
    note: str = ""


class SmsResultSchema(_FromDomain):
    ok: bool
    to: str
    method: Optional[str] = None
    status: Optional[int] = None
    body: Optional[str] = None
    error: Optional[str] = None


class SmsSentResponse(BaseModel):
    ok: bool = True
    to: str
    method: Optional[str] = None
    status: Optional[int] = None


class EditLinkResponse(BaseModel):
    ok: bool = True
    link: str
    sms_result: SmsResultSchema


class SmsTemplatesSchema(BaseModel):
    approve: str
    decline: str


# --- Bulk import ---


class BulkBookingRequest(BaseModel):
    rows: list[dict[str, Any]] = []


class BulkRowResultSchema(_FromDomain):
    index: int
    ok: bool
    skipped: bool = False
    reference: Optional[str] = None
    short_ref: Optional[str] = None
    error: Optional[str] = None


class BulkBookingResponse(BaseModel):
    ok: bool = True
    count: int
    results: list[BulkRowResultSchema]


# --- Reports / Smart Pack ---


class RouteStopSchema(_FromDomain):
    booking_id: Optional[str] = None
    formatted: str = ""
    post_code: str = ""
    town: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    zone_name: str
    label: Optional[str] = None
    staff_name: str = ""
    staff_phone: str = ""


class RouteGroupSchema(BaseModel):
    pickup_date_iso: str
    pickup_date: str  # DD-MM-YY for the route sheet
    on_off_duty_time: str
    cluster_label: str
    zones: list[str]
    count: int
    stops: list[RouteStopSchema]


class ShiftGroupsResponse(BaseModel):
    type: str
    direction: str
    skipped: int = 0
    groups: list[RouteGroupSchema]


class ZoneReportItem(BaseModel):
    pickup_date: str
    ward: str
    staff: str
    shift_type: str
    on_off_duty_time: str
    reference: str


class ZoneReportSchema(BaseModel):
    zone_name: str
    count: int
    items: list[ZoneReportItem]


class ShiftReportSchema(BaseModel):
    shift_type: str
    on_off_duty_time: str
    count: int
    zones: list[str]


# --- Autocab ---


class SmartPackStopInput(BaseModel):
    formatted: str = ""
    text: str = ""
    post_code: str = ""
    town: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    label: str = ""
    note: str = ""
    staff_name: str = ""
    staff_phone: str = ""


class SmartPackMeta(BaseModel):
    shift_type: str = ""
    bucket_label: str = ""


class BookSmartPackRequest(BaseModel):
    date: str = ""
    time: str = ""
    passengers: Optional[int] = None
    vehicle_capacity: Optional[int] = None
    stops: list[SmartPackStopInput] = []
    meta: SmartPackMeta = SmartPackMeta()


class BookSmartPackResponse(BaseModel):
    ok: bool = True
    message: str = "Smart Pack booking created in Autocab."
    booking_response: Any = None


# --- Budget portal ---


class BudgetLoginRequest(BaseModel):
    budget_number: str = ""
    holder_name: str = ""
    pin: str = ""


class BudgetSessionSchema(_FromDomain):
    budget_number: str
    holder_name: str


class BudgetSessionResponse(BaseModel):
    ok: bool = True
    session: BudgetSessionSchema


class BudgetBookingUpdateRequest(BaseModel):
    ward_name: Optional[str] = None
    ward_phone: Optional[str] = None
    staff_name: Optional[str] = None
    staff_phone: Optional[str] = None
    shift_type: Optional[str] = None
    on_off_duty_time: Optional[str] = None
    pickup_date_iso: Optional[str] = None
    reason_code: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True
