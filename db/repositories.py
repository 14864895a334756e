"""
Database repositories for data access
"""
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date, datetime, timezone, timedelta
from typing import List, Optional
import logging
import secrets

from db.models import (
    ATTRACTION_STATUSES,
    NOTIFICATION_TYPES,
    USER_ROLES,
    Attraction,
    Notification,
    QueueStatus,
    StaffMetric,
    User,
    UserPreferences,
    UserSession,
)
from errors import ConflictError, InvalidInputError, NotFoundError
from models import (
    AttractionInfo,
    NotificationInfo,
    PreferencesInfo,
    PreferencesUpdate,
    QueueStateResponse,
    StaffMetricCreate,
    StaffMetricInfo,
    StaffMetricsSummary,
)
from queueModel import QueuePolicy, default_policy

logger = logging.getLogger(__name__)


def _require_non_negative_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"{field} must be a non-negative integer.")
    return value


class AttractionRepository:
    """Attraction registry: reference data and operating status"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _select_with_queue(self):
        return (
            select(Attraction, QueueStatus)
            .outerjoin(QueueStatus, QueueStatus.attraction_id == Attraction.id)
        )

    @staticmethod
    def _to_info(attraction: Attraction, queue: Optional[QueueStatus]) -> AttractionInfo:
        return AttractionInfo(
            id=attraction.id,
            name=attraction.name,
            description=attraction.description,
            category=attraction.category,
            latitude=attraction.latitude,
            longitude=attraction.longitude,
            estimated_duration_minutes=attraction.estimated_duration_minutes,
            capacity=attraction.capacity,
            status=attraction.status,
            queue_length=queue.queue_length if queue else None,
            estimated_wait_minutes=queue.estimated_wait_minutes if queue else None,
            queue_updated_at=queue.last_updated if queue else None
        )

    async def find(self, attraction_id: int) -> Optional[Attraction]:
        """Get the attraction row, or None"""
        result = await self.session.execute(
            select(Attraction).where(Attraction.id == attraction_id)
        )
        return result.scalar_one_or_none()

    async def get(self, attraction_id: int) -> AttractionInfo:
        """Get attraction with its queue, raising NotFoundError if unknown"""
        result = await self.session.execute(
            self._select_with_queue().where(Attraction.id == attraction_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Attraction")
        return self._to_info(*row)

    async def list(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None
    ) -> List[AttractionInfo]:
        """
        List attractions ordered by name.
        Without a status filter only open attractions are returned.
        """
        query = self._select_with_queue().where(Attraction.status == (status or "open"))
        if category:
            query = query.where(Attraction.category == category)

        result = await self.session.execute(query.order_by(Attraction.name))
        return [self._to_info(attraction, queue) for attraction, queue in result.all()]

    async def create(
        self,
        name: str,
        latitude: float,
        longitude: float,
        category: Optional[str] = None,
        description: Optional[str] = None,
        estimated_duration_minutes: int = 30,
        capacity: int = 100,
        status: str = "open"
    ) -> AttractionInfo:
        """Insert an attraction together with its zeroed queue state"""
        if not -90 <= latitude <= 90:
            raise InvalidInputError("Latitude must be between -90 and +90 degrees.")
        if not -180 <= longitude <= 180:
            raise InvalidInputError("Longitude must be between -180 and +180 degrees.")
        if capacity <= 0:
            raise InvalidInputError("capacity must be a positive integer.")
        if status not in ATTRACTION_STATUSES:
            raise InvalidInputError(f"status must be one of {', '.join(ATTRACTION_STATUSES)}.")

        attraction = Attraction(
            name=name,
            description=description,
            category=category,
            latitude=latitude,
            longitude=longitude,
            estimated_duration_minutes=estimated_duration_minutes,
            capacity=capacity,
            status=status
        )
        self.session.add(attraction)
        try:
            await self.session.flush()
            self.session.add(QueueStatus(
                attraction_id=attraction.id,
                queue_length=0,
                estimated_wait_minutes=0
            ))
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Attraction '{name}' already exists.")

        logger.info(f"Created attraction {attraction.id} ({name})")
        return await self.get(attraction.id)

    async def set_status(self, attraction_id: int, status: str, reason: str) -> AttractionInfo:
        """
        Change operating status (staff operation).
        Not committed here; the caller commits it together with the
        subscriber notifications.
        """
        if status not in ATTRACTION_STATUSES:
            raise InvalidInputError(f"status must be one of {', '.join(ATTRACTION_STATUSES)}.")
        if not reason or not reason.strip():
            raise InvalidInputError("reason is required.")

        result = await self.session.execute(
            update(Attraction)
            .where(Attraction.id == attraction_id)
            .values(status=status, updated_at=func.now())
            .returning(Attraction.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Attraction")

        logger.info(f"Attraction {attraction_id} set to {status}: {reason.strip()}")
        return await self.get(attraction_id)


class QueueRepository:
    """Queue state store; arrivals go through the queue policy"""

    def __init__(self, session: AsyncSession, policy: Optional[QueuePolicy] = None):
        self.session = session
        self.policy = policy or default_policy()

    def _select(self):
        return (
            select(
                QueueStatus.id,
                QueueStatus.attraction_id,
                Attraction.name.label("attraction_name"),
                QueueStatus.queue_length,
                QueueStatus.estimated_wait_minutes,
                QueueStatus.last_updated
            )
            .join(Attraction, QueueStatus.attraction_id == Attraction.id)
        )

    async def get_status(self, attraction_id: int) -> QueueStateResponse:
        """Get current queue state, raising NotFoundError if the attraction is unknown"""
        result = await self.session.execute(
            self._select().where(QueueStatus.attraction_id == attraction_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Attraction")
        return QueueStateResponse(**row._mapping)

    async def list_all(self) -> List[QueueStateResponse]:
        """All queue states ordered by attraction name"""
        result = await self.session.execute(self._select().order_by(Attraction.name))
        return [QueueStateResponse(**row._mapping) for row in result.all()]

    async def _apply(self, attraction_id: int, **values) -> QueueStateResponse:
        """Single UPDATE ... RETURNING so both counters change together"""
        result = await self.session.execute(
            update(QueueStatus)
            .where(QueueStatus.attraction_id == attraction_id)
            .values(last_updated=func.now(), **values)
            .returning(
                QueueStatus.id,
                QueueStatus.attraction_id,
                QueueStatus.queue_length,
                QueueStatus.estimated_wait_minutes,
                QueueStatus.last_updated
            )
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Attraction")

        name = await self.session.scalar(
            select(Attraction.name).where(Attraction.id == attraction_id)
        )
        await self.session.commit()

        return QueueStateResponse(attraction_name=name, **row._mapping)

    async def join(self, attraction_id: int) -> QueueStateResponse:
        """
        Record one arrival. The increment and the derived wait are computed
        by the database from the stored length, so concurrent joins never
        lose an update.
        """
        next_length = self.policy.next_length(QueueStatus.queue_length)
        state = await self._apply(
            attraction_id,
            queue_length=next_length,
            estimated_wait_minutes=self.policy.estimate_wait(next_length)
        )
        logger.debug(
            f"Queue {attraction_id} joined: length={state.queue_length} "
            f"wait={state.estimated_wait_minutes}"
        )
        return state

    async def set_status(
        self,
        attraction_id: int,
        queue_length: int,
        estimated_wait_minutes: int
    ) -> QueueStateResponse:
        """Staff override; the pair is stored verbatim"""
        _require_non_negative_int(queue_length, "queue_length")
        _require_non_negative_int(estimated_wait_minutes, "estimated_wait_minutes")

        state = await self._apply(
            attraction_id,
            queue_length=queue_length,
            estimated_wait_minutes=estimated_wait_minutes
        )
        logger.info(
            f"Queue {attraction_id} overridden: length={queue_length} wait={estimated_wait_minutes}"
        )
        return state


class UserRepository:
    """Repository for user accounts"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def create(self, email: str, password_hash: str, role: str = "visitor") -> User:
        """Insert a user, raising ConflictError if the email is taken"""
        if role not in USER_ROLES:
            raise InvalidInputError(f"role must be one of {', '.join(USER_ROLES)}.")

        user = User(email=email, password_hash=password_hash, role=role)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Email already registered.")

        await self.session.refresh(user)
        return user


class SessionRepository:
    """Server-side session store keyed by an opaque cookie token"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User, max_age_seconds: int) -> UserSession:
        record = UserSession(
            id=secrets.token_urlsafe(32),
            user_id=user.id,
            email=user.email,
            role=user.role,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=max_age_seconds)
        )
        self.session.add(record)
        await self.session.commit()
        return record

    async def get_active(self, token: str) -> Optional[UserSession]:
        """Get a session that has not expired yet"""
        result = await self.session.execute(
            select(UserSession)
            .where(UserSession.id == token)
            .where(UserSession.expires_at > datetime.now(timezone.utc))
        )
        return result.scalar_one_or_none()

    async def delete(self, token: str):
        """Delete a session; unknown tokens are ignored"""
        await self.session.execute(delete(UserSession).where(UserSession.id == token))
        await self.session.commit()

    async def purge_expired(self) -> int:
        result = await self.session.execute(
            delete(UserSession).where(UserSession.expires_at <= datetime.now(timezone.utc))
        )
        await self.session.commit()
        return result.rowcount or 0


class PreferencesRepository:
    """Repository for per-user notification preferences"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, user_id: int) -> Optional[UserPreferences]:
        result = await self.session.execute(
            select(UserPreferences).where(UserPreferences.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: int) -> Optional[PreferencesInfo]:
        prefs = await self._load(user_id)
        return PreferencesInfo.model_validate(prefs) if prefs else None

    async def update(self, user_id: int, changes: PreferencesUpdate) -> PreferencesInfo:
        """Create preferences with defaults, or update only the provided fields"""
        prefs = await self._load(user_id)
        provided = changes.model_dump(exclude_unset=True, exclude_none=True)

        if prefs is None:
            prefs = UserPreferences(
                user_id=user_id,
                notifications_enabled=provided.get("notifications_enabled", True),
                preferred_attractions=provided.get("preferred_attractions", "[]"),
                distance_alert_threshold=provided.get("distance_alert_threshold", 500)
            )
            self.session.add(prefs)
        else:
            for field, value in provided.items():
                setattr(prefs, field, value)

        await self.session.commit()
        await self.session.refresh(prefs)
        return PreferencesInfo.model_validate(prefs)

    async def set_notifications(self, user_id: int, enabled: bool) -> PreferencesInfo:
        return await self.update(user_id, PreferencesUpdate(notifications_enabled=enabled))


class NotificationRepository:
    """Repository for user notifications"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: int,
        message: str,
        notification_type: str = "general",
        attraction_id: Optional[int] = None
    ) -> Notification:
        """Stage a notification; the caller's unit of work commits it"""
        if notification_type not in NOTIFICATION_TYPES:
            raise InvalidInputError(f"type must be one of {', '.join(NOTIFICATION_TYPES)}.")

        notification = Notification(
            user_id=user_id,
            attraction_id=attraction_id,
            type=notification_type,
            message=message,
            is_read=False
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_user(self, user_id: int, limit: int = 20) -> List[NotificationInfo]:
        """Newest notifications first, with the attraction name when there is one"""
        result = await self.session.execute(
            select(
                Notification.id,
                Notification.user_id,
                Notification.attraction_id,
                Attraction.name.label("attraction_name"),
                Notification.type,
                Notification.message,
                Notification.is_read,
                Notification.created_at
            )
            .outerjoin(Attraction, Notification.attraction_id == Attraction.id)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        return [NotificationInfo(**row._mapping) for row in result.all()]

    async def mark_read(self, notification_id: int, user_id: int):
        """Flip is_read to true; other users' notifications count as missing"""
        result = await self.session.execute(
            update(Notification)
            .where(Notification.id == notification_id)
            .where(Notification.user_id == user_id)
            .values(is_read=True)
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Notification")
        await self.session.commit()

    async def notify_status_change(
        self,
        attraction_id: int,
        attraction_name: str,
        status: str,
        reason: str
    ) -> int:
        """
        Stage a status_updates notification for every subscribed user.
        Not committed here; it shares the status change's transaction.
        """
        result = await self.session.execute(
            select(UserPreferences.user_id).where(UserPreferences.notifications_enabled.is_(True))
        )
        user_ids = result.scalars().all()

        message = f"{attraction_name} is now {status}: {reason.strip()}"
        for user_id in user_ids:
            await self.create(user_id, message, "status_updates", attraction_id=attraction_id)

        logger.info(f"Sent status update for attraction {attraction_id} to {len(user_ids)} users")
        return len(user_ids)


class StaffMetricRepository:
    """Repository for daily per-attraction staff metrics"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _select(self):
        return (
            select(
                StaffMetric.id,
                StaffMetric.attraction_id,
                Attraction.name.label("attraction_name"),
                StaffMetric.metric_date,
                StaffMetric.ticket_sales,
                StaffMetric.uptime_percentage,
                StaffMetric.visitors_count,
                StaffMetric.avg_wait_time_minutes,
                StaffMetric.recorded_at
            )
            .join(Attraction, StaffMetric.attraction_id == Attraction.id)
        )

    @staticmethod
    def _date_filters(query, from_date: Optional[date], to_date: Optional[date]):
        if from_date:
            query = query.where(StaffMetric.metric_date >= from_date)
        if to_date:
            query = query.where(StaffMetric.metric_date <= to_date)
        return query

    async def record(self, data: StaffMetricCreate) -> StaffMetricInfo:
        """Insert or replace the row keyed by (attraction_id, metric_date)"""
        attraction = await self.session.scalar(
            select(Attraction.id).where(Attraction.id == data.attraction_id)
        )
        if attraction is None:
            raise NotFoundError("Attraction")

        result = await self.session.execute(
            select(StaffMetric)
            .where(StaffMetric.attraction_id == data.attraction_id)
            .where(StaffMetric.metric_date == data.metric_date)
        )
        metric = result.scalar_one_or_none()
        figures = data.model_dump(exclude={"attraction_id", "metric_date"})

        if metric is None:
            metric = StaffMetric(
                attraction_id=data.attraction_id,
                metric_date=data.metric_date,
                **figures
            )
            self.session.add(metric)
        else:
            for field, value in figures.items():
                setattr(metric, field, value)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Metrics for this attraction and date were recorded concurrently.")

        result = await self.session.execute(self._select().where(StaffMetric.id == metric.id))
        return StaffMetricInfo(**result.one()._mapping)

    async def list(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        attraction_id: Optional[int] = None
    ) -> List[StaffMetricInfo]:
        """Metrics newest date first, then by attraction name"""
        query = self._date_filters(self._select(), from_date, to_date)
        if attraction_id:
            query = query.where(StaffMetric.attraction_id == attraction_id)

        result = await self.session.execute(
            query.order_by(StaffMetric.metric_date.desc(), Attraction.name)
        )
        return [StaffMetricInfo(**row._mapping) for row in result.all()]

    async def summary(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> StaffMetricsSummary:
        """Aggregate figures over the optional date window"""
        query = select(
            func.count(func.distinct(StaffMetric.attraction_id)),
            func.coalesce(func.sum(StaffMetric.ticket_sales), 0),
            func.avg(StaffMetric.uptime_percentage),
            func.coalesce(func.sum(StaffMetric.visitors_count), 0),
            func.avg(StaffMetric.avg_wait_time_minutes),
            func.min(StaffMetric.metric_date),
            func.max(StaffMetric.metric_date)
        )
        result = await self.session.execute(self._date_filters(query, from_date, to_date))
        attractions, tickets, uptime, visitors, wait, start, end = result.one()

        return StaffMetricsSummary(
            num_attractions=attractions,
            total_ticket_sales=tickets,
            avg_uptime_percentage=round(uptime, 2) if uptime is not None else None,
            total_visitors=visitors,
            avg_wait_time_minutes=round(wait, 2) if wait is not None else None,
            period_start=start,
            period_end=end
        )
