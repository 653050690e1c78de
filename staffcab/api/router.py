"""
Staff booking API router. Calls application only. No business logic.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from staffcab.api.dependencies import (
    get_autocab_client,
    get_booking_store,
    get_geocode,
    get_settings,
    get_sms_gateway,
    get_sms_templates,
    get_zone_clusters,
    get_zone_lookup,
    get_zone_pickups,
)
from staffcab.api.errors import raise_http
from staffcab.api.schemas import (
    BookingCreateRequest,
    BookingCreateResponse,
    BookingLogSchema,
    BookingLogsResponse,
    BookingPageSchema,
    BookingResponse,
    BookingSchema,
    BookingSmsRequest,
    BookingUpdateRequest,
    BookSmartPackRequest,
    BookSmartPackResponse,
    BulkBookingRequest,
    BulkBookingResponse,
    BulkRowResultSchema,
    CustomerCancelRequest,
    CustomerUpdateRequest,
    DeclineRequest,
    DeletedResponse,
    EditLinkResponse,
    OkResponse,
    PublicBookingSchema,
    RouteGroupSchema,
    RouteStopSchema,
    SendEditLinkRequest,
    SendSmsRequest,
    ShiftGroupsResponse,
    ShiftReportSchema,
    SmsResultSchema,
    SmsSentResponse,
    SmsTemplatesSchema,
    ZoneReportSchema,
    ZoneSchema,
)
from staffcab.application.config import Settings
from staffcab.application.use_cases import bookings as booking_cases
from staffcab.application.use_cases.autocab_booking import SmartPackBookingRequest, SmartPackStop, book_smart_pack
from staffcab.application.use_cases.bulk_import import import_rows
from staffcab.application.use_cases.notifications import send_booking_sms, send_edit_link, send_generic_sms
from staffcab.application.use_cases.reports import report_by_shift, report_by_zone
from staffcab.application.use_cases.smart_pack import build_shift_groups
from staffcab.domain.booking_rules import to_ddmmyy
from staffcab.domain.models import RouteGroup, Stop
from staffcab.domain.zone_clusters import ZoneClusterConfig
from staffcab.infrastructure.autocab_client import AutocabClient
from staffcab.infrastructure.booking_store import BookingStore
from staffcab.infrastructure.settings_files import SmsTemplateFile, ZonePickupFile
from staffcab.infrastructure.sms_gateway import SmsGateway

logger = logging.getLogger(__name__)

router = APIRouter()


def _booking(b) -> BookingSchema:
    return BookingSchema.model_validate(b)


def _query(
    date_from: str = "",
    date_to: str = "",
    shift_type: str = "",
    time: str = "",
    zone: str = "",
    ward: str = "",
    staff: str = "",
    reference: str = "",
    require_return: Optional[bool] = None,
    is_return: Optional[bool] = None,
    status: str = "",
    sort: str = "",
    page: int = 1,
    limit: int = 50,
) -> booking_cases.BookingQuery:
    return booking_cases.BookingQuery(
        date_from=date_from,
        date_to=date_to,
        shift_type=shift_type,
        time=time,
        zone=zone,
        ward=ward,
        staff=staff,
        reference=reference,
        require_return=require_return,
        is_return=is_return,
        status=status,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.get("/api/health", response_model=OkResponse)
def get_health() -> OkResponse:
    return OkResponse()


# --- Settings ---


@router.get("/api/settings/sms-templates", response_model=SmsTemplatesSchema)
def get_sms_template_settings(templates: SmsTemplateFile = Depends(get_sms_templates)) -> SmsTemplatesSchema:
    return SmsTemplatesSchema(**templates.get())


@router.put("/api/settings/sms-templates", response_model=SmsTemplatesSchema)
def put_sms_template_settings(
    request: SmsTemplatesSchema,
    templates: SmsTemplateFile = Depends(get_sms_templates),
) -> SmsTemplatesSchema:
    approve = request.approve.strip()
    decline = request.decline.strip()
    if not approve or not decline:
        raise HTTPException(status_code=400, detail="Both approve and decline templates are required")
    return SmsTemplatesSchema(**templates.update(approve, decline))


@router.get("/api/settings/zone-pickups")
def get_zone_pickup_settings(pickups: ZonePickupFile = Depends(get_zone_pickups)) -> dict:
    return pickups.load()


@router.put("/api/settings/zone-pickups", response_model=OkResponse)
def put_zone_pickup_settings(body: dict, pickups: ZonePickupFile = Depends(get_zone_pickups)) -> OkResponse:
    """Body: {zone name: [entry, ...]}. Must be an object."""
    if not pickups.save(body):
        raise HTTPException(status_code=500, detail="Failed to save zone pickups")
    return OkResponse()


# --- Zone lookup ---


@router.get("/api/zone", response_model=Optional[ZoneSchema])
def get_zone(lat: float, lng: float, autocab: AutocabClient = Depends(get_autocab_client)):
    """Autocab zone for a point, null when the lookup fails."""
    zone = autocab.lookup_zone(lat, lng)
    return ZoneSchema.model_validate(zone) if zone else None


# --- Bookings ---


@router.post("/api/bookings", response_model=BookingCreateResponse)
def post_booking(
    request: BookingCreateRequest,
    store: BookingStore = Depends(get_booking_store),
    zone_lookup=Depends(get_zone_lookup),
) -> BookingCreateResponse:
    try:
        payload = request.model_dump(exclude_none=True)
        booking, return_booking = booking_cases.create_booking(payload, store, zone_lookup)
        return BookingCreateResponse(
            booking=_booking(booking),
            return_booking=_booking(return_booking) if return_booking else None,
        )
    except Exception as e:
        raise_http(e)


@router.post("/api/bulk-bookings", response_model=BulkBookingResponse)
def post_bulk_bookings(
    request: BulkBookingRequest,
    store: BookingStore = Depends(get_booking_store),
    zone_lookup=Depends(get_zone_lookup),
    geocode=Depends(get_geocode),
) -> BulkBookingResponse:
    try:
        results = import_rows(request.rows, store, zone_lookup, geocode)
        return BulkBookingResponse(
            count=len(results),
            results=[BulkRowResultSchema.model_validate(r) for r in results],
        )
    except Exception as e:
        raise_http(e)


@router.get("/api/bookings", response_model=BookingPageSchema)
def get_bookings(
    query: booking_cases.BookingQuery = Depends(_query),
    store: BookingStore = Depends(get_booking_store),
) -> BookingPageSchema:
    try:
        page = booking_cases.query_bookings(store, query)
        return BookingPageSchema(
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
            items=[_booking(b) for b in page.items],
        )
    except Exception as e:
        raise_http(e)


@router.get("/api/bookings/export")
def get_bookings_export(
    query: booking_cases.BookingQuery = Depends(_query),
    store: BookingStore = Depends(get_booking_store),
) -> Response:
    try:
        csv_text = booking_cases.export_bookings_csv(store, query)
    except Exception as e:
        raise_http(e)
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=bookings_export.csv"},
    )


@router.put("/api/bookings/{booking_id}", response_model=BookingResponse)
def put_booking(
    booking_id: str,
    request: BookingUpdateRequest,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    try:
        booking = booking_cases.update_booking(store, booking_id, request.model_dump(exclude_unset=True))
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


@router.patch("/api/bookings/{booking_id}/approve", response_model=BookingResponse)
def patch_approve(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> BookingResponse:
    try:
        booking = booking_cases.set_status(
            store, booking_id, "approved", details={"via": "PATCH /api/bookings/:id/approve"}
        )
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


@router.patch("/api/bookings/{booking_id}/decline", response_model=BookingResponse)
def patch_decline(
    booking_id: str,
    request: Optional[DeclineRequest] = None,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    try:
        booking = booking_cases.set_status(
            store, booking_id, "declined",
            reason=request.reason if request else None,
            details={"via": "PATCH /api/bookings/:id/decline"},
        )
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


@router.patch("/api/bookings/{booking_id}/clear-status", response_model=BookingResponse)
def patch_clear_status(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> BookingResponse:
    try:
        booking = booking_cases.set_status(
            store, booking_id, "pending", details={"via": "PATCH /api/bookings/:id/clear-status"}
        )
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


@router.delete("/api/bookings/{booking_id}", response_model=DeletedResponse)
def delete_booking(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> DeletedResponse:
    try:
        return DeletedResponse(deleted_id=booking_cases.delete_booking(store, booking_id))
    except Exception as e:
        raise_http(e)


@router.get("/api/bookings/{booking_id}/logs", response_model=BookingLogsResponse)
def get_booking_logs(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> BookingLogsResponse:
    return BookingLogsResponse(items=[BookingLogSchema.model_validate(l) for l in store.logs_for(booking_id)])


# --- Staff self-service link ---


@router.get("/api/bookings/{booking_id}/public", response_model=PublicBookingSchema)
def get_public_booking(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> PublicBookingSchema:
    try:
        return PublicBookingSchema.model_validate(store.get(booking_id))
    except Exception as e:
        raise_http(e)


@router.post("/api/bookings/{booking_id}/customer-confirm", response_model=BookingResponse)
def post_customer_confirm(booking_id: str, store: BookingStore = Depends(get_booking_store)) -> BookingResponse:
    try:
        return BookingResponse(booking=_booking(booking_cases.customer_confirm(store, booking_id)))
    except Exception as e:
        raise_http(e)


@router.post("/api/bookings/{booking_id}/customer-update", response_model=BookingResponse)
def post_customer_update(
    booking_id: str,
    request: CustomerUpdateRequest,
    store: BookingStore = Depends(get_booking_store),
    zone_lookup=Depends(get_zone_lookup),
    geocode=Depends(get_geocode),
) -> BookingResponse:
    try:
        booking = booking_cases.customer_update(
            store, booking_id, request.model_dump(exclude_none=True), zone_lookup, geocode
        )
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


@router.post("/api/bookings/{booking_id}/customer-cancel", response_model=BookingResponse)
def post_customer_cancel(
    booking_id: str,
    request: Optional[CustomerCancelRequest] = None,
    store: BookingStore = Depends(get_booking_store),
) -> BookingResponse:
    try:
        booking = booking_cases.customer_cancel(store, booking_id, request.reason if request else None)
        return BookingResponse(booking=_booking(booking))
    except Exception as e:
        raise_http(e)


# --- SMS ---


def _sms_failed(result) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={"error": "SMS send failed", "details": SmsResultSchema.model_validate(result).model_dump()},
    )


@router.post("/send-sms", response_model=SmsSentResponse)
def post_send_sms(
    request: SendSmsRequest,
    store: BookingStore = Depends(get_booking_store),
    sms: SmsGateway = Depends(get_sms_gateway),
) -> SmsSentResponse:
    try:
        result = send_generic_sms(store, sms, request.to, request.message, request.source, request.booking_id)
    except Exception as e:
        raise_http(e)
    if not result.ok:
        raise _sms_failed(result)
    return SmsSentResponse(to=result.to, method=result.method, status=result.status)


@router.post("/api/bookings/{booking_id}/sms", response_model=SmsSentResponse)
def post_booking_sms(
    booking_id: str,
    request: BookingSmsRequest,
    store: BookingStore = Depends(get_booking_store),
    sms: SmsGateway = Depends(get_sms_gateway),
    templates: SmsTemplateFile = Depends(get_sms_templates),
) -> SmsSentResponse:
    try:
        result = send_booking_sms(
            store, sms, booking_id, templates.get(),
            message=request.message,
            phone_source=request.phone_source,
            template=request.template,
            reason=request.reason,
        )
    except Exception as e:
        raise_http(e)
    if not result.ok:
        raise _sms_failed(result)
    return SmsSentResponse(to=result.to, method=result.method, status=result.status)


@router.post("/api/bookings/{booking_id}/send-edit-link", response_model=EditLinkResponse)
def post_send_edit_link(
    booking_id: str,
    http_request: Request,
    request: Optional[SendEditLinkRequest] = None,
    store: BookingStore = Depends(get_booking_store),
    sms: SmsGateway = Depends(get_sms_gateway),
    settings: Settings = Depends(get_settings),
) -> EditLinkResponse:
    request = request or SendEditLinkRequest()
    base = settings.public_customer_base or str(http_request.base_url)
    try:
        link, result = send_edit_link(store, sms, booking_id, base, request.reason, request.note)
    except Exception as e:
        raise_http(e)
    if not result.ok:
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to send SMS", "sms_result": SmsResultSchema.model_validate(result).model_dump()},
        )
    return EditLinkResponse(link=link, sms_result=SmsResultSchema.model_validate(result))


# --- Reports / Smart Pack ---


@router.get("/api/reports/by-zone", response_model=list[ZoneReportSchema])
def get_report_by_zone(date: str = "", store: BookingStore = Depends(get_booking_store)):
    return report_by_zone(store.all(), date.strip())


@router.get("/api/reports/by-shift", response_model=list[ShiftReportSchema])
def get_report_by_shift(date: str = "", store: BookingStore = Depends(get_booking_store)):
    return report_by_shift(store.all(), date.strip())


def _stop_schema(stop: Stop) -> RouteStopSchema:
    lat, lng = stop.coordinates if stop.coordinates is not None else (None, None)
    return RouteStopSchema(
        booking_id=stop.booking_id,
        formatted=stop.formatted,
        post_code=stop.post_code,
        town=stop.town,
        lat=lat,
        lng=lng,
        zone_name=stop.zone_name,
        label=stop.label,
        staff_name=stop.staff_name,
        staff_phone=stop.staff_phone,
    )


def _route_group_schema(g: RouteGroup) -> RouteGroupSchema:
    return RouteGroupSchema(
        pickup_date_iso=g.date,
        pickup_date=to_ddmmyy(g.date),
        on_off_duty_time=g.time,
        cluster_label=g.cluster_label,
        zones=list(g.source_zones),
        count=g.stop_count,
        stops=[_stop_schema(s) for s in g.ordered_stops],
    )


@router.get("/api/reports/shift-groups", response_model=ShiftGroupsResponse)
def get_shift_groups(
    type: str = "start",
    date: str = "",
    store: BookingStore = Depends(get_booking_store),
    clusters: ZoneClusterConfig = Depends(get_zone_clusters),
    pickups: ZonePickupFile = Depends(get_zone_pickups),
) -> ShiftGroupsResponse:
    """
    GET /api/reports/shift-groups?type=start|finish&date=YYYY-MM-DD
    Smart Pack: bookings grouped by date, time and zone cluster, each group in driving order.
    """
    try:
        result = build_shift_groups(store.all(), type, clusters, pickups.load(), date.strip())
        return ShiftGroupsResponse(
            type=result.type,
            direction=result.direction,
            skipped=result.skipped,
            groups=[_route_group_schema(g) for g in result.groups],
        )
    except Exception as e:
        raise_http(e)


# --- Autocab ---


@router.post("/api/autocab/book-smartpack", response_model=BookSmartPackResponse)
def post_book_smart_pack(
    request: BookSmartPackRequest,
    settings: Settings = Depends(get_settings),
    autocab: AutocabClient = Depends(get_autocab_client),
) -> BookSmartPackResponse:
    try:
        req = SmartPackBookingRequest(
            date=request.date,
            time=request.time,
            stops=[SmartPackStop(**s.model_dump()) for s in request.stops],
            passengers=request.passengers,
            vehicle_capacity=request.vehicle_capacity,
            shift_type=request.meta.shift_type,
            bucket_label=request.meta.bucket_label,
        )
        body = book_smart_pack(req, settings, autocab)
        logger.info("Smart Pack booking created for %s %s (%d stops)", req.date, req.time, len(req.stops))
        return BookSmartPackResponse(booking_response=body)
    except Exception as e:
        raise_http(e)
