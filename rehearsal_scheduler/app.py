import logging

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import settings
from .engine import OptimalTimesRequest, find_optimal_times
from .errors import PermissionDenied, SchedulerError
from .serialization import result_to_dict
from .store import JsonStore, load_store

settings.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Rehearsal Scheduler")

_store = None


def get_store() -> JsonStore:
    global _store
    if _store is None:
        _store = load_store()
    return _store


@app.exception_handler(SchedulerError)
async def scheduler_error_handler(request: Request, exc: SchedulerError):
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    logger.exception("Exception in %s %s", request.method, request.url.path)
    return JSONResponse({"error": "server_error", "detail": str(exc)}, status_code=500)


def _require_member(store: JsonStore, band_id: str, user_id: str):
    if not store.is_member(band_id, user_id):
        raise PermissionDenied("Not authorized: you are not a member of this band")


def _require_admin(store: JsonStore, band_id: str, user_id: str):
    if not store.is_admin(band_id, user_id):
        raise PermissionDenied("Not authorized: admin access required")


@app.get("/healthz")
def health():
    return {"ok": True}


# Bands
@app.post("/api/bands", status_code=201)
def create_band(body: dict = Body(...), user_id: str = Query(...), store: JsonStore = Depends(get_store)):
    band_id = (body.get("bandId") or "").strip()
    if not band_id:
        return JSONResponse({"error": "missing_band_id"}, status_code=400)
    band = store.create_band(band_id, user_id)
    return {"success": True, "data": band}


@app.post("/api/bands/{band_id}/members", status_code=201)
def add_member(band_id: str, body: dict = Body(...), user_id: str = Query(...),
               store: JsonStore = Depends(get_store)):
    _require_admin(store, band_id, user_id)
    member_id = (body.get("userId") or "").strip()
    if not member_id:
        return JSONResponse({"error": "missing_user_id"}, status_code=400)
    band = store.add_member(band_id, member_id, role=body.get("role", "member"))
    return {"success": True, "data": band}


@app.put("/api/bands/{band_id}/members/{member_id}")
def update_member(band_id: str, member_id: str, body: dict = Body(...), user_id: str = Query(...),
                  store: JsonStore = Depends(get_store)):
    _require_admin(store, band_id, user_id)
    member = store.update_member(band_id, member_id, body.get("role"))
    return {"success": True, "data": member}


@app.delete("/api/bands/{band_id}/members/{member_id}")
def remove_member(band_id: str, member_id: str, user_id: str = Query(...),
                  store: JsonStore = Depends(get_store)):
    _require_admin(store, band_id, user_id)
    member = store.remove_member(band_id, member_id)
    logger.info("remove_member: band=%s member=%s by=%s", band_id, member_id, user_id)
    return {"success": True, "data": member}


@app.get("/api/bands/{band_id}/members")
def list_members(band_id: str, user_id: str = Query(...), store: JsonStore = Depends(get_store)):
    _require_member(store, band_id, user_id)
    members = store.members(band_id)
    return {"success": True, "count": len(members), "data": members}


# Availability
@app.post("/api/availability/band/{band_id}", status_code=201)
def set_availability(band_id: str, body: dict = Body(...), user_id: str = Query(...),
                     store: JsonStore = Depends(get_store)):
    _require_member(store, band_id, user_id)
    rule = store.create_rule(user_id, band_id, body)
    logger.info("set_availability: band=%s user=%s rule=%s kind=%s", band_id, user_id, rule.id, rule.kind.value)
    return {"success": True, "data": rule.to_dict()}


@app.get("/api/availability/band/{band_id}")
def get_user_availability(band_id: str, user_id: str = Query(...), store: JsonStore = Depends(get_store)):
    _require_member(store, band_id, user_id)
    rules = store.get_availability_rules(user_id, band_id)
    return {"success": True, "count": len(rules), "data": [r.to_dict() for r in rules]}


@app.get("/api/availability/band/{band_id}/all")
def get_band_availability(band_id: str, user_id: str = Query(...), store: JsonStore = Depends(get_store)):
    _require_admin(store, band_id, user_id)
    rules = store.band_rules(band_id)
    return {"success": True, "count": len(rules), "data": [r.to_dict() for r in rules]}


@app.put("/api/availability/{rule_id}")
def update_availability(rule_id: str, body: dict = Body(...), user_id: str = Query(...),
                        store: JsonStore = Depends(get_store)):
    rule = store.update_rule(rule_id, user_id, body)
    return {"success": True, "data": rule.to_dict()}


@app.delete("/api/availability/{rule_id}")
def delete_availability(rule_id: str, user_id: str = Query(...), store: JsonStore = Depends(get_store)):
    store.delete_rule(rule_id, user_id)
    return {"success": True, "data": {}}


@app.post("/api/availability/band/{band_id}/optimal")
def optimal_times(band_id: str, body: dict = Body(default={}), user_id: str = Query(...),
                  store: JsonStore = Depends(get_store)):
    """
    Body can include:
      - duration (minutes, default 120) or durationMinutes
      - requiredMembers: list of member ids that must all attend
      - startDate / endDate (ISO dates, inclusive); default is the coming week
      - topN (default 3)
    """
    _require_admin(store, band_id, user_id)
    req = OptimalTimesRequest.from_payload(band_id, body)
    result = find_optimal_times(req, store.snapshot(band_id))
    return {"success": True, "data": result_to_dict(result)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
