from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    circuit: str | None = None


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck(request: Request):
    """Liveness plus the state of the feed circuit breaker, when the service is up."""
    service = getattr(request.app.state, "feed_service", None)
    circuit = service.breaker.state.value if service is not None else None
    return {"status": "ok", "circuit": circuit}
