"""
Pydantic schemas for the London Zoo platform API
"""
from pydantic import BaseModel, Field, ConfigDict
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional


# Largest value an INTEGER primary key can hold
MAX_ID = 2**31 - 1

AttractionStatus = Literal["open", "closed", "delayed"]
Role = Literal["visitor", "staff"]


# ============ Auth ============

class Credentials(BaseModel):
    """Email/password body for register and login"""
    email: Optional[str] = None
    password: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "visitor@example.com",
                "password": "Zebra!Crossing9"
            }
        }
    )


class UserInfo(BaseModel):
    id: int
    email: str
    role: Role


class AuthResponse(BaseModel):
    message: str
    user: UserInfo


class AuthStatusResponse(BaseModel):
    isAuthenticated: bool
    user: Optional[UserInfo] = None


class MessageResponse(BaseModel):
    message: str


# ============ Attractions ============

class AttractionInfo(BaseModel):
    """Attraction reference data joined with its current queue"""
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    latitude: float
    longitude: float
    estimated_duration_minutes: int
    capacity: int
    status: AttractionStatus
    queue_length: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None
    queue_updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 2,
                "name": "Penguin Pool",
                "description": "Watch playful penguins dive, swim, smile and wave",
                "category": "Birds",
                "latitude": 51.5355,
                "longitude": -0.15,
                "estimated_duration_minutes": 30,
                "capacity": 100,
                "status": "open",
                "queue_length": 3,
                "estimated_wait_minutes": 15,
                "queue_updated_at": "2026-06-01T10:15:00Z"
            }
        }
    )


class AttractionStatusUpdate(BaseModel):
    """Staff request to change operating status"""
    status: AttractionStatus
    reason: str


# ============ Queue ============

class QueueStateResponse(BaseModel):
    """Current queue state for one attraction"""
    id: int
    attraction_id: int
    attraction_name: str
    queue_length: int
    estimated_wait_minutes: int
    last_updated: datetime

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 2,
                "attraction_id": 2,
                "attraction_name": "Penguin Pool",
                "queue_length": 3,
                "estimated_wait_minutes": 15,
                "last_updated": "2026-06-01T10:15:00Z"
            }
        }
    )


class QueueOverride(BaseModel):
    """Staff correction; the two values are not checked against each other"""
    queue_length: int = Field(..., ge=0, strict=True)
    estimated_wait_minutes: int = Field(..., ge=0, strict=True)


# ============ Navigation ============

class EtaRequest(BaseModel):
    """
    Raw ETA body. Fields are left untyped so the estimator can report
    missing, non-numeric and out-of-range values with distinct messages.
    """
    user_latitude: Any = None
    user_longitude: Any = None
    attraction_id: Any = None


class EtaResponse(BaseModel):
    attraction_id: int
    attraction_name: str
    distance_meters: int
    distance_km: float
    estimated_walk_time_minutes: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "attraction_id": 1,
                "attraction_name": "African Savanna",
                "distance_meters": 65,
                "distance_km": 0.07,
                "estimated_walk_time_minutes": 1
            }
        }
    )


# ============ Notifications / Profile ============

class NotificationInfo(BaseModel):
    id: int
    user_id: int
    attraction_id: Optional[int] = None
    attraction_name: Optional[str] = None
    type: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PreferencesInfo(BaseModel):
    id: int
    user_id: int
    notifications_enabled: bool
    preferred_attractions: Optional[str] = None
    distance_alert_threshold: int
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PreferencesUpdate(BaseModel):
    """Partial preferences update; omitted fields are left unchanged"""
    notifications_enabled: Optional[bool] = Field(None, strict=True)
    preferred_attractions: Optional[str] = Field(None, strict=True)
    distance_alert_threshold: Optional[int] = Field(None, ge=0, strict=True)


class UserProfile(BaseModel):
    id: int
    email: str
    role: Role
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    user: UserProfile
    preferences: Optional[PreferencesInfo] = None


class PreferencesResponse(BaseModel):
    message: str
    preferences: PreferencesInfo


# ============ Staff metrics ============

class StaffMetricCreate(BaseModel):
    """One attraction's figures for one day (insert or replace)"""
    attraction_id: int = Field(..., gt=0, le=MAX_ID, strict=True)
    metric_date: date
    ticket_sales: int = Field(0, ge=0, strict=True)
    uptime_percentage: float = Field(100.0, ge=0, le=100)
    visitors_count: int = Field(0, ge=0, strict=True)
    avg_wait_time_minutes: float = Field(0.0, ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "attraction_id": 2,
                "metric_date": "2026-06-01",
                "ticket_sales": 420,
                "uptime_percentage": 98.5,
                "visitors_count": 1310,
                "avg_wait_time_minutes": 12.5
            }
        }
    )


class StaffMetricInfo(BaseModel):
    id: int
    attraction_id: int
    attraction_name: str
    metric_date: date
    ticket_sales: int
    uptime_percentage: float
    visitors_count: int
    avg_wait_time_minutes: float
    recorded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StaffMetricsListResponse(BaseModel):
    metrics: List[StaffMetricInfo]
    filters: Dict[str, Optional[Any]]


class StaffMetricsSummary(BaseModel):
    num_attractions: int
    total_ticket_sales: int
    avg_uptime_percentage: Optional[float] = None
    total_visitors: int
    avg_wait_time_minutes: Optional[float] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None


class StaffMetricsSummaryResponse(BaseModel):
    summary: StaffMetricsSummary
    filters: Dict[str, Optional[Any]]
