"""In-app notification endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentPrincipal, DatabaseSession
from app.schemas.notifications import NotificationListResponse, NotificationResponse
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List notifications",
)
async def list_notifications(
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> NotificationListResponse:
    """
    The caller's inbox, newest first.

    Args:
        principal: Authenticated caller
        db: Database session

    Returns:
        Notifications with the unread count
    """
    return await NotificationService(db).list_for_user(principal.user_id)


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> NotificationResponse:
    """Mark one of the caller's notifications as read."""
    return await NotificationService(db).mark_as_read(notification_id, principal.user_id)
