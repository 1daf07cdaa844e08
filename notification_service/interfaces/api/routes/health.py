from fastapi import APIRouter, Request

from notification_service.interfaces.api.schemas import HealthRead

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
def health(request: Request) -> HealthRead:
    service = getattr(request.app.state, "service", None)
    if service is None:
        return HealthRead(status="ok")
    return HealthRead(**service.health())
