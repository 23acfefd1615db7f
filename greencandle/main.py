# greencandle/main.py
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.exceptions import HTTPException as StarletteHTTPException

from greencandle.db import close_mongo_connection, connect_to_mongo, ping
from greencandle.dependencies import get_admin_id, get_db, get_subscriber_tier
from greencandle.errors import AppError
from greencandle.pagination import format_pagination_response, parse_pagination
from greencandle.scheduler import Scheduler
from greencandle.schemas import (
    ActivateSubscriptionReq,
    CallCreateReq,
    CallUpdateReq,
    HealthResponse,
    TargetStatusReq,
    UserCreateReq,
    UserStatusReq,
    UserUpdateReq,
)
from greencandle.services import calls as call_service
from greencandle.services import queries
from greencandle.services import user_management
from greencandle.services.mappers import map_call, map_calls, map_user, map_users
from greencandle.services.visibility import TierDescriptor, project_calls
from greencandle.settings import settings

VERSION = "1.0.0"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------- lifespan ----------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.mongodb = await connect_to_mongo()
    app.state.scheduler = None
    if settings.expiry_sweep_enabled:
        app.state.scheduler = Scheduler(app.state.mongodb)
        app.state.scheduler.start()
        logger.info("expiry sweep scheduled at %02d:%02d IST", settings.expiry_sweep_hour, settings.expiry_sweep_minute)

    try:
        yield
    finally:
        if app.state.scheduler:
            app.state.scheduler.shutdown()
        await close_mongo_connection()

app = FastAPI(
    title="Green Candle API",
    version=VERSION,
    lifespan=lifespan,
)

origins = settings.cors_origin_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Admin-Id", "X-User-Id"],
)


# ---------------- errors ----------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"status": "fail", "error_code": "HTTP_ERROR", "message": str(exc.detail)},
        status_code=exc.status_code,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(
        {"status": "fail", "error_code": "VALIDATION_ERROR", "message": "Validation failed", "details": errors},
        status_code=400,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"status": "error", "message": "Internal server error"}, status_code=500)


def ok(data, status_code: int = 200):
    return JSONResponse({"status": "success", "data": data}, status_code=status_code)


# ---------------- health & root ----------------

@app.get("/healthz", response_model=HealthResponse)
async def healthz(db: AsyncIOMotorDatabase = Depends(get_db)):
    db_ok = await ping(db)
    return HealthResponse(
        status="ok",
        env=settings.app_env,
        version=VERSION,
        db_connected=db_ok,
    )

@app.get("/")
async def root():
    return {"status": "success", "message": "Welcome to The Green Candle API"}


# ---------------- admin: calls ----------------

@app.post("/api/admin/calls")
async def create_call(
    req: CallCreateReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    doc = await call_service.create_call(db, req.model_dump(by_alias=True), created_by=admin_id)
    return ok({"call": map_call(doc)}, status_code=201)

@app.get("/api/admin/calls")
async def list_calls(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    commodity: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
    tradeType: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = None,
):
    page, limit, skip = parse_pagination(page, limit)
    query = queries.admin_filter(commodity, status, type, tradeType, startDate, endDate)
    docs, total = await queries.find_page(db, query, queries.admin_sort(sortBy, sortOrder), skip, limit)
    return {"status": "success", **format_pagination_response(map_calls(docs), total, page, limit, key="calls")}

@app.get("/api/admin/calls/{call_id}")
async def get_call(call_id: str, db: AsyncIOMotorDatabase = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    doc = await call_service.get_call(db, call_id)
    return ok({"call": map_call(doc)})

@app.put("/api/admin/calls/{call_id}")
async def update_call(
    call_id: str,
    req: CallUpdateReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    doc = await call_service.update_call(db, call_id, req.model_dump(by_alias=True, exclude_unset=True))
    return ok({"call": map_call(doc)})

@app.delete("/api/admin/calls/{call_id}")
async def delete_call(call_id: str, db: AsyncIOMotorDatabase = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    await call_service.delete_call(db, call_id)
    return {"status": "success", "message": "Call deleted successfully"}

@app.patch("/api/admin/calls/{call_id}/targets/{target_id}/status")
async def update_target_status(
    call_id: str,
    target_id: str,
    req: TargetStatusReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    doc = await call_service.set_target_achieved(db, call_id, target_id, req.isAchieved)
    return ok({"call": map_call(doc)})


# ---------------- admin: users ----------------

@app.get("/api/admin/users")
async def list_users(
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    subscriptionStatus: Optional[str] = Query(None, pattern="^(active|inactive)$"),
):
    page, limit, skip = parse_pagination(page, limit)
    users, total = await user_management.list_users(
        db, search=search, subscription_status=subscriptionStatus, skip=skip, limit=limit
    )
    return {"status": "success", **format_pagination_response(map_users(users), total, page, limit, key="users")}

@app.post("/api/admin/users")
async def create_user(req: UserCreateReq, db: AsyncIOMotorDatabase = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    user = await user_management.create_user(db, req.model_dump())
    return JSONResponse(
        {"status": "success", "message": "User created successfully", "data": {"user": map_user(user)}},
        status_code=201,
    )

@app.get("/api/admin/users/{user_id}")
async def get_user(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    user = await user_management.get_user_by_id(db, user_id)
    return ok({"user": map_user(user)})

@app.put("/api/admin/users/{user_id}")
async def update_user(
    user_id: str,
    req: UserUpdateReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    user = await user_management.update_user(db, user_id, req.model_dump(exclude_unset=True))
    return {"status": "success", "message": "User updated successfully", "data": {"user": map_user(user)}}

@app.patch("/api/admin/users/{user_id}/status")
async def update_user_status(
    user_id: str,
    req: UserStatusReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    user = await user_management.update_user_status(db, user_id, req.isActive)
    return ok({"user": map_user(user)})

@app.post("/api/admin/users/{user_id}/activate-subscription")
async def activate_subscription(
    user_id: str,
    req: ActivateSubscriptionReq,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin_id: str = Depends(get_admin_id),
):
    user = await user_management.activate_subscription(db, user_id, req.plan, req.planTier)
    return {"status": "success", "message": "Subscription activated successfully", "data": {"user": map_user(user)}}

@app.delete("/api/admin/users/{user_id}")
async def delete_user(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db), admin_id: str = Depends(get_admin_id)):
    await user_management.delete_user(db, user_id)
    return {"status": "success", "message": "User deleted successfully"}


# ---------------- subscriber: calls ----------------

@app.get("/api/calls")
async def today_calls(
    tradeType: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
    tier: TierDescriptor = Depends(get_subscriber_tier),
):
    docs = await queries.find_today(db, tradeType)
    calls = project_calls(map_calls(docs, include_creator=False), tier)
    return ok({"calls": calls})

@app.get("/api/calls/history")
async def call_history(
    db: AsyncIOMotorDatabase = Depends(get_db),
    tier: TierDescriptor = Depends(get_subscriber_tier),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    commodity: Optional[str] = None,
    tradeType: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
):
    page, limit, skip = parse_pagination(page, limit)
    query = queries.history_filter(commodity, tradeType, startDate, endDate)
    docs, total = await queries.find_page(db, query, [("tradingDay", -1), ("_id", -1)], skip, limit)
    calls = project_calls(map_calls(docs, include_creator=False), tier)
    return {"status": "success", **format_pagination_response(calls, total, page, limit, key="calls")}

@app.get("/api/calls/history/stats")
async def call_stats(db: AsyncIOMotorDatabase = Depends(get_db), tier: TierDescriptor = Depends(get_subscriber_tier)):
    return ok(await queries.compute_stats(db))

@app.get("/api/calls/history/stats/by-commodity")
async def call_stats_by_commodity(
    db: AsyncIOMotorDatabase = Depends(get_db),
    tier: TierDescriptor = Depends(get_subscriber_tier),
):
    return ok({"stats": await queries.compute_commodity_stats(db)})
