"""
London Zoo platform API - FastAPI application
Session-authenticated REST API for attractions, queues, walking ETAs,
notifications and staff metrics
"""
from fastapi import FastAPI, Query, Path, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Optional
import logging
import time

from config.config import settings
from db.database import get_db, get_session, init_db, check_db, close_db
from db.repositories import (
    AttractionRepository,
    NotificationRepository,
    PreferencesRepository,
    QueueRepository,
    SessionRepository,
    StaffMetricRepository,
    UserRepository,
)
from db.seed import seed_attractions, seed_staff_account
from errors import DomainError, ErrorCode, NotFoundError
from models import (
    MAX_ID,
    AttractionInfo,
    AttractionStatusUpdate,
    AuthResponse,
    AuthStatusResponse,
    Credentials,
    EtaRequest,
    EtaResponse,
    MessageResponse,
    NotificationInfo,
    PreferencesResponse,
    PreferencesUpdate,
    ProfileResponse,
    QueueOverride,
    QueueStateResponse,
    StaffMetricCreate,
    StaffMetricInfo,
    StaffMetricsListResponse,
    StaffMetricsSummaryResponse,
    UserInfo,
    UserProfile,
)
from services import access
from services.access import Authenticated, Caller
from services.navigation import estimate_eta

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic"""
    # Startup
    logger.info("Starting London Zoo API...")

    await init_db()
    logger.info("Database initialized")

    if settings.SEED_ON_STARTUP:
        async with get_db() as db:
            await seed_attractions(db)
            await seed_staff_account(db)

    async with get_db() as db:
        purged = await SessionRepository(db).purge_expired()
        logger.info(f"Purged {purged} expired sessions")

    logger.info(f"London Zoo API ready (environment: {settings.ENVIRONMENT})")

    yield

    # Shutdown
    logger.info("Shutting down London Zoo API...")
    await close_db()


app = FastAPI(
    title="London Zoo Digital Platform API",
    description="Attractions, live queues, walking ETAs and staff metrics for London Zoo",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - cookies need an explicit origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms")
    return response


# ============ Error handling ============

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code.value}
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are InvalidInput (400)"""
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        field = ".".join(
            str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))

    return JSONResponse(
        status_code=400,
        content={"detail": message, "code": ErrorCode.INVALID_INPUT.value}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {"detail": "Internal server error"}
    if not settings.is_production:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# ============ Dependencies ============

async def get_caller(request: Request, db: AsyncSession = Depends(get_session)) -> Caller:
    """Classify the caller from the session cookie"""
    return await access.resolve(db, request.cookies.get(settings.SESSION_COOKIE_NAME))


async def authenticated_caller(caller: Caller = Depends(get_caller)) -> Authenticated:
    return access.require_authenticated(caller)


async def staff_caller(caller: Caller = Depends(get_caller)) -> Authenticated:
    return access.require_role(caller, "staff")


def _set_session_cookie(response: Response, caller: Authenticated):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=caller.session_id,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# ============ Health ============

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    db_connected = await check_db()

    return JSONResponse(
        status_code=200 if db_connected else 503,
        content={
            "status": "ok" if db_connected else "degraded",
            "service": settings.SERVICE_NAME,
            "database": "connected" if db_connected else "disconnected",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


# ============ Auth ============

@app.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(
    credentials: Credentials,
    response: Response,
    db: AsyncSession = Depends(get_session)
):
    """
    Create a visitor account and start a session

    Example body: {"email": "visitor@example.com", "password": "Zebra!Crossing9"}
    """
    user, caller = await access.register(db, credentials.email, credentials.password)
    _set_session_cookie(response, caller)

    return AuthResponse(
        message="Registration successful.",
        user=UserInfo(id=user.id, email=user.email, role=user.role)
    )


@app.post("/auth/login", response_model=AuthResponse)
async def login(
    credentials: Credentials,
    response: Response,
    db: AsyncSession = Depends(get_session)
):
    """Verify credentials and start a session"""
    user, caller = await access.authenticate(db, credentials.email, credentials.password)
    _set_session_cookie(response, caller)

    return AuthResponse(
        message="Login successful.",
        user=UserInfo(id=user.id, email=user.email, role=user.role)
    )


@app.post("/auth/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session)
):
    """End the current session; calling it without one is fine"""
    await access.destroy(db, request.cookies.get(settings.SESSION_COOKIE_NAME))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)

    logger.info("User logged out")
    return MessageResponse(message="Logout successful.")


@app.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status(caller: Caller = Depends(get_caller)):
    if isinstance(caller, Authenticated):
        return AuthStatusResponse(
            isAuthenticated=True,
            user=UserInfo(id=caller.user_id, email=caller.email, role=caller.role)
        )
    return AuthStatusResponse(isAuthenticated=False)


# ============ Attractions ============

@app.get("/attractions", response_model=List[AttractionInfo])
async def list_attractions(
    status: Optional[str] = Query(
        None,
        pattern="^(open|closed|delayed)$",
        description="Operating status; defaults to open"
    ),
    category: Optional[str] = Query(None, description="Filter by category (Mammals, Birds, ...)"),
    db: AsyncSession = Depends(get_session)
):
    """
    List attractions with their current queue

    Example: GET /attractions?category=Mammals
    """
    return await AttractionRepository(db).list(status=status, category=category)


@app.get("/attractions/{attraction_id}", response_model=AttractionInfo)
async def get_attraction(
    attraction_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_session)
):
    return await AttractionRepository(db).get(attraction_id)


@app.patch("/attractions/{attraction_id}/status", response_model=AttractionInfo)
async def set_attraction_status(
    update: AttractionStatusUpdate,
    attraction_id: int = Path(..., gt=0, le=MAX_ID),
    staff: Authenticated = Depends(staff_caller),
    db: AsyncSession = Depends(get_session)
):
    """
    Staff change of operating status; subscribed users are notified.
    The status and the notifications are committed together.
    """
    attraction = await AttractionRepository(db).set_status(
        attraction_id, update.status, update.reason
    )
    await NotificationRepository(db).notify_status_change(
        attraction.id, attraction.name, attraction.status, update.reason
    )
    await db.commit()
    return attraction


# ============ Queue ============

@app.get("/queue", response_model=List[QueueStateResponse])
async def list_queues(db: AsyncSession = Depends(get_session)):
    """All queue states ordered by attraction name"""
    return await QueueRepository(db).list_all()


@app.get("/queue/{attraction_id}", response_model=QueueStateResponse)
async def get_queue(
    attraction_id: int = Path(..., gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_session)
):
    return await QueueRepository(db).get_status(attraction_id)


@app.patch("/queue/{attraction_id}", response_model=QueueStateResponse)
async def override_queue(
    override: QueueOverride,
    attraction_id: int = Path(..., gt=0, le=MAX_ID),
    staff: Authenticated = Depends(staff_caller),
    db: AsyncSession = Depends(get_session)
):
    """
    Staff correction of a queue

    Example body: {"queue_length": 10, "estimated_wait_minutes": 3}
    """
    logger.info(f"Staff {staff.user_id} overriding queue {attraction_id}")
    return await QueueRepository(db).set_status(
        attraction_id, override.queue_length, override.estimated_wait_minutes
    )


@app.post("/queue/{attraction_id}/join", response_model=QueueStateResponse)
async def join_queue(
    attraction_id: int = Path(..., gt=0, le=MAX_ID),
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    """Add the caller to the queue; the attraction's status is not checked"""
    return await QueueRepository(db).join(attraction_id)


# ============ Navigation ============

@app.post("/navigation/eta", response_model=EtaResponse)
async def navigation_eta(
    payload: Optional[EtaRequest] = None,
    db: AsyncSession = Depends(get_session)
):
    """
    Walking distance and time to an attraction

    Example body: {"user_latitude": 51.5355, "user_longitude": -0.1512, "attraction_id": 1}
    """
    payload = payload or EtaRequest()
    return await estimate_eta(
        db, payload.user_latitude, payload.user_longitude, payload.attraction_id
    )


# ============ Notifications ============

@app.get("/notifications", response_model=List[NotificationInfo])
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    return await NotificationRepository(db).list_for_user(caller.user_id, limit=limit)


@app.patch("/notifications/{notification_id}/read", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: int = Path(..., gt=0, le=MAX_ID),
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    await NotificationRepository(db).mark_read(notification_id, caller.user_id)
    return MessageResponse(message="Notification marked as read.")


@app.post("/notifications/subscribe", response_model=MessageResponse)
async def subscribe_notifications(
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    await PreferencesRepository(db).set_notifications(caller.user_id, True)
    return MessageResponse(message="Notifications enabled.")


@app.post("/notifications/unsubscribe", response_model=MessageResponse)
async def unsubscribe_notifications(
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    await PreferencesRepository(db).set_notifications(caller.user_id, False)
    return MessageResponse(message="Notifications disabled.")


# ============ Profile ============

@app.get("/profile", response_model=ProfileResponse)
async def get_profile(
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    user = await UserRepository(db).get_by_id(caller.user_id)
    if user is None:
        raise NotFoundError("User")

    return ProfileResponse(
        user=UserProfile.model_validate(user),
        preferences=await PreferencesRepository(db).get(caller.user_id)
    )


@app.patch("/profile/preferences", response_model=PreferencesResponse)
async def update_preferences(
    changes: PreferencesUpdate,
    caller: Authenticated = Depends(authenticated_caller),
    db: AsyncSession = Depends(get_session)
):
    preferences = await PreferencesRepository(db).update(caller.user_id, changes)
    return PreferencesResponse(message="Preferences updated.", preferences=preferences)


# ============ Staff metrics ============

@app.get("/staff-metrics", response_model=StaffMetricsListResponse)
async def list_staff_metrics(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    attraction_id: Optional[int] = Query(None, gt=0, le=MAX_ID),
    staff: Authenticated = Depends(staff_caller),
    db: AsyncSession = Depends(get_session)
):
    """
    Daily metrics, newest first

    Example: GET /staff-metrics?from_date=2026-06-01&to_date=2026-06-30
    """
    metrics = await StaffMetricRepository(db).list(
        from_date=from_date, to_date=to_date, attraction_id=attraction_id
    )
    return StaffMetricsListResponse(
        metrics=metrics,
        filters={"from_date": from_date, "to_date": to_date, "attraction_id": attraction_id}
    )


@app.get("/staff-metrics/summary", response_model=StaffMetricsSummaryResponse)
async def staff_metrics_summary(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    staff: Authenticated = Depends(staff_caller),
    db: AsyncSession = Depends(get_session)
):
    summary = await StaffMetricRepository(db).summary(from_date=from_date, to_date=to_date)
    return StaffMetricsSummaryResponse(
        summary=summary,
        filters={"from_date": from_date, "to_date": to_date}
    )


@app.post("/staff-metrics", response_model=StaffMetricInfo)
async def record_staff_metric(
    metric: StaffMetricCreate,
    staff: Authenticated = Depends(staff_caller),
    db: AsyncSession = Depends(get_session)
):
    """
    Record one attraction's figures for a day, replacing any earlier record

    Example body:
    {
        "attraction_id": 2,
        "metric_date": "2026-06-01",
        "ticket_sales": 420,
        "uptime_percentage": 98.5,
        "visitors_count": 1310,
        "avg_wait_time_minutes": 12.5
    }
    """
    logger.info(f"Staff {staff.user_id} recording metrics for attraction {metric.attraction_id}")
    return await StaffMetricRepository(db).record(metric)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=not settings.is_production,
        log_level=settings.LOG_LEVEL.lower()
    )
