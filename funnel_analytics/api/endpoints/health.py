from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    try:
        status = {"status": "ok", "event_store": await request.app.state.store.ping()}
        redis = getattr(request.app.state, "redis", None)
        if redis is not None:
            status["redis"] = await redis.ping()
        return status
    except Exception as e:
        return Response(status_code=503, content=str(e))


@router.get("/readyz")
async def readyz(request: Request):
    if request.app.state.ready_event.is_set():
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
