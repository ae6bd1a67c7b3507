from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/census")
def census_summary(request: Request) -> dict[str, int]:
    gate = request.app.state.gate
    return {
        "enabled_units": gate.registry.enabled_count(),
        "residents": gate.registry.resident_count(),
        "open_sessions": len(gate.sessions.active_sessions()),
    }
