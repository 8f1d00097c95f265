import json
import logging
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm

from config import Settings, load_settings
from models import (
    ALL_DISTRICTS,
    UNKNOWN_DISTRICT,
    ApprovalFilter,
    ApprovalUpdate,
    CampCreate,
    CampStatus,
    CampStatusUpdate,
    NotifyChannel,
    OccupancyUpdate,
    SendResult,
    SortKey,
    StatusBucket,
    StatusUpdate,
    Token,
)
from services.classifier import DistrictClassifier
from services.dashboard import DashboardFeed, build_map_layers
from services.errors import (
    InvalidCredentials,
    InvalidSession,
    LankaSafeError,
    NoDistrictMatch,
    NotificationSendFailure,
    OccupancyOutOfRange,
    RecordNotFound,
    SubscriptionFailure,
    WriteThroughFailure,
)
from services.gazetteer import Gazetteer
from services.notifier import EmailJSRelay, MailtoRelay, NotificationRouter
from services.records import (
    build_camp_view,
    build_list_view,
    record_view,
    sort_volunteers,
    volunteer_counts,
)
from services.session import Session, SessionManager, StaticCredentialProvider
from services.stats import build_overview
from services.store import (
    AID_REQUESTS,
    DETENTION_CAMPS,
    INCIDENTS,
    VOLUNTEERS,
    InMemoryRecordStore,
    RecordStore,
    now_ms,
)
from utils.data_loader import load_gazetteer

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    gazetteer: Gazetteer
    classifier: DistrictClassifier
    store: RecordStore
    feed: DashboardFeed
    router: NotificationRouter
    sessions: SessionManager


def build_relays(settings: Settings) -> Dict[NotifyChannel, Any]:
    relays: Dict[NotifyChannel, Any] = {NotifyChannel.MAILTO: MailtoRelay()}
    if settings.emailjs_configured:
        relays[NotifyChannel.RELAY] = EmailJSRelay(
            service_id=settings.emailjs_service_id,
            template_id=settings.emailjs_template_id,
            public_key=settings.emailjs_public_key,
            private_key=settings.emailjs_private_key,
            api_url=settings.emailjs_api_url,
            timeout=settings.relay_timeout_seconds,
        )
    else:
        logger.warning("EmailJS is not configured; officer alerts use mailto links only")
    return relays


def build_services(
    settings: Settings,
    store: Optional[RecordStore] = None,
    relays: Optional[Dict[NotifyChannel, Any]] = None,
) -> Services:
    # One gazetteer for filtering and notification routing alike
    gazetteer = load_gazetteer(str(settings.data_dir / "districts.json"))
    classifier = DistrictClassifier(gazetteer)
    store = store if store is not None else InMemoryRecordStore.from_directory(settings.data_dir)
    router = NotificationRouter(
        classifier,
        relays if relays is not None else build_relays(settings),
        email_domain=settings.officer_email_domain,
        tz=settings.display_timezone,
    )
    sessions = SessionManager(
        StaticCredentialProvider(settings.admin_username, settings.admin_password),
        ttl_seconds=settings.session_ttl_seconds,
    )
    logger.info("Loaded gazetteer version %s with %d districts", gazetteer.version, len(gazetteer))
    return Services(settings, gazetteer, classifier, store, DashboardFeed(store), router, sessions)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login")


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_session(request: Request, token: str = Depends(oauth2_scheme)) -> Session:
    return get_services(request).sessions.validate(token)


def check_district(svc: Services, district: str) -> str:
    if district == UNKNOWN_DISTRICT or svc.gazetteer.is_known(district):
        return district
    raise HTTPException(status_code=404, detail=f"District {district} not found")


public = APIRouter()
api = APIRouter(dependencies=[Depends(require_session)])


@public.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@public.post("/login")
def login(request: Request, form: OAuth2PasswordRequestForm = Depends()) -> Token:
    return get_services(request).sessions.login(form.username, form.password)


@api.post("/logout")
def logout(request: Request, token: str = Depends(oauth2_scheme)) -> Dict[str, str]:
    get_services(request).sessions.logout(token)
    return {"status": "signed out"}


@api.get("/districts")
def list_districts(request: Request) -> Dict[str, Any]:
    svc = get_services(request)
    return {
        "version": svc.gazetteer.version,
        "all": {"name": ALL_DISTRICTS, "viewport": svc.gazetteer.viewport_for(ALL_DISTRICTS)},
        "districts": [
            {
                "name": d.name,
                "bounds": [d.bounds.min_lat, d.bounds.min_lng, d.bounds.max_lat, d.bounds.max_lng],
                "viewport": svc.gazetteer.viewport_for(d.name),
            }
            for d in svc.gazetteer
        ],
    }


@api.get("/districts/classify")
def classify_point(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
) -> Dict[str, Any]:
    svc = get_services(request)
    return {"lat": lat, "lng": lng, "district": svc.classifier.classify(lat, lng)}


@api.get("/incidents")
def list_incidents(
    request: Request,
    district: str = ALL_DISTRICTS,
    status_filter: StatusBucket = Query(StatusBucket.ALL, alias="status"),
    sort: SortKey = SortKey.RECENT,
    incident_type: Optional[str] = Query(None, alias="type"),
) -> Dict[str, Any]:
    svc = get_services(request)
    check_district(svc, district)
    return build_list_view(svc.feed.incidents(), svc.classifier, district, status_filter, sort, incident_type=incident_type)


@api.patch("/incidents/{incident_id}/action-status")
def update_incident_status(request: Request, incident_id: str, update: StatusUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    svc.store.update_partial(INCIDENTS, incident_id, {"actionStatus": update.status.value})
    return record_view(svc.feed.find(INCIDENTS, incident_id), svc.classifier)


@api.post("/incidents/{incident_id}/notify")
def notify_incident(request: Request, incident_id: str, channel: Optional[NotifyChannel] = None) -> SendResult:
    svc = get_services(request)
    incident = svc.feed.find(INCIDENTS, incident_id)
    return svc.router.route_and_notify(incident, channel or NotifyChannel(svc.settings.notify_channel))


@api.get("/aid-requests")
def list_aid_requests(
    request: Request,
    district: str = ALL_DISTRICTS,
    status_filter: StatusBucket = Query(StatusBucket.ALL, alias="status"),
    sort: SortKey = SortKey.RECENT,
) -> Dict[str, Any]:
    svc = get_services(request)
    check_district(svc, district)
    return build_list_view(svc.feed.aid_requests(), svc.classifier, district, status_filter, sort)


@api.patch("/aid-requests/{aid_request_id}/status")
def update_aid_status(request: Request, aid_request_id: str, update: StatusUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    svc.store.update_partial(AID_REQUESTS, aid_request_id, {"aidStatus": update.status.value})
    return record_view(svc.feed.find(AID_REQUESTS, aid_request_id), svc.classifier)


@api.post("/aid-requests/{aid_request_id}/notify")
def notify_aid_request(
    request: Request, aid_request_id: str, channel: Optional[NotifyChannel] = None
) -> SendResult:
    svc = get_services(request)
    aid_request = svc.feed.find(AID_REQUESTS, aid_request_id)
    return svc.router.route_and_notify(aid_request, channel or NotifyChannel(svc.settings.notify_channel))


@api.get("/camps")
def list_camps(
    request: Request,
    district: str = ALL_DISTRICTS,
    approval: ApprovalFilter = ApprovalFilter.ALL,
) -> Dict[str, Any]:
    svc = get_services(request)
    check_district(svc, district)
    return build_camp_view(svc.feed.camps(), svc.classifier, district, approval)


@api.post("/camps", status_code=status.HTTP_201_CREATED)
def create_camp(request: Request, camp: CampCreate) -> Dict[str, Any]:
    svc = get_services(request)
    now = now_ms()
    camp_id = f"camp_{now}_{secrets.token_hex(3)}"
    record = {
        "id": camp_id,
        "name": camp.name,
        "latitude": camp.latitude,
        "longitude": camp.longitude,
        "capacity": camp.capacity,
        "current_occupancy": 0,
        "facilities": json.dumps(camp.facilities),
        "campStatus": CampStatus.OPERATIONAL.value,
        "contact_person": camp.contact_person,
        "contact_phone": camp.contact_phone,
        "description": camp.description,
        # Admin-created camps skip the approval queue
        "adminApproved": True,
        "created_at": now,
        "updated_at": now,
    }
    svc.store.create_record(DETENTION_CAMPS, camp_id, record)
    return record_view(svc.feed.find(DETENTION_CAMPS, camp_id), svc.classifier)


@api.patch("/camps/{camp_id}/status")
def update_camp_status(request: Request, camp_id: str, update: CampStatusUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    svc.store.update_partial(DETENTION_CAMPS, camp_id, {"campStatus": update.status.value})
    return record_view(svc.feed.find(DETENTION_CAMPS, camp_id), svc.classifier)


@api.patch("/camps/{camp_id}/occupancy")
def update_camp_occupancy(request: Request, camp_id: str, update: OccupancyUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    camp = svc.feed.find(DETENTION_CAMPS, camp_id)
    if not 0 <= update.current_occupancy <= camp.capacity:
        raise OccupancyOutOfRange(update.current_occupancy, camp.capacity)
    svc.store.update_partial(DETENTION_CAMPS, camp_id, {"current_occupancy": update.current_occupancy})
    return record_view(svc.feed.find(DETENTION_CAMPS, camp_id), svc.classifier)


@api.patch("/camps/{camp_id}/approval")
def update_camp_approval(request: Request, camp_id: str, update: ApprovalUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    svc.store.update_partial(DETENTION_CAMPS, camp_id, {"adminApproved": update.approved})
    return record_view(svc.feed.find(DETENTION_CAMPS, camp_id), svc.classifier)


@api.get("/volunteers")
def list_volunteers(request: Request) -> Dict[str, Any]:
    volunteers = get_services(request).feed.volunteers()
    return {
        "counts": volunteer_counts(volunteers).model_dump(),
        "items": [v.model_dump(mode="json", by_alias=True) for v in sort_volunteers(volunteers)],
    }


@api.patch("/volunteers/{volunteer_id}/approval")
def update_volunteer_approval(request: Request, volunteer_id: str, update: ApprovalUpdate) -> Dict[str, Any]:
    svc = get_services(request)
    svc.store.update_partial(VOLUNTEERS, volunteer_id, {"approved": update.approved})
    return svc.feed.find(VOLUNTEERS, volunteer_id).model_dump(mode="json", by_alias=True)


@api.get("/stats")
def stats_overview(request: Request, district: str = ALL_DISTRICTS) -> Dict[str, Any]:
    svc = get_services(request)
    check_district(svc, district)
    return build_overview(
        svc.classifier,
        svc.feed.incidents(),
        svc.feed.aid_requests(),
        svc.feed.camps(),
        now_ms=now_ms(),
        tz=svc.settings.display_timezone,
        district=district,
    )


@api.get("/map")
def map_layers(request: Request, district: str = ALL_DISTRICTS) -> Dict[str, Any]:
    svc = get_services(request)
    check_district(svc, district)
    return build_map_layers(
        svc.classifier, district, svc.feed.incidents(), svc.feed.aid_requests(), svc.feed.camps()
    )


ERROR_RESPONSES = {
    NoDistrictMatch: (422, "Unable to determine district officer email from coordinates"),
    RecordNotFound: (404, None),
    OccupancyOutOfRange: (422, None),
    WriteThroughFailure: (503, "Update failed. Please try again."),
    NotificationSendFailure: (502, "Unable to send alert. Please try again."),
    SubscriptionFailure: (503, None),
    InvalidCredentials: (401, None),
    InvalidSession: (401, None),
}


async def handle_service_error(request: Request, exc: LankaSafeError) -> JSONResponse:
    status_code, message = 500, "Internal error"
    for error_type, (code, text) in ERROR_RESPONSES.items():
        if isinstance(exc, error_type):
            status_code, message = code, text or str(exc)
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"detail": message}, headers=headers)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    relays: Optional[Dict[NotifyChannel, Any]] = None,
) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level)
    services = build_services(settings, store=store, relays=relays)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.feed.start()
        yield
        services.feed.stop()

    app = FastAPI(title="LankaSafe HQ", lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(LankaSafeError, handle_service_error)
    app.include_router(public)
    app.include_router(api)
    return app


app = create_app()
