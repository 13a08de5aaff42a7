"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from goryl.services.personalization import PersonalizationService


def get_service(request: Request) -> PersonalizationService:
    """Return the service built during application startup."""
    service = getattr(request.app.state, "personalization", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Personalization service unavailable",
        )
    return service
