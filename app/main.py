from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import AsyncSessionLocal, dispose_db, init_db
from app.core.rate_limit import limiter
from app.features.users.routes import router as user_router
from app.features.permissions.routes import router as permission_router
from app.features.permissions.guard import GuardOutcome, RouteGuardRejection
from app.features.permissions.repository import SQLPermissionFetcher
from app.features.permissions.store import PermissionStoreRegistry
from app.features.employees.routes import router as employee_router
from app.features.leaves.routes import router as leave_router
from app.features.references.routes import router as reference_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="HR Portal Backend",
    description="Access control for the HR portal: permission rows, branch access and the admin route guard",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


GUARD_STATUS_CODES = {
    GuardOutcome.LOADING: 503,
    GuardOutcome.UNAUTHENTICATED: 401,
    GuardOutcome.ROLE_REJECTED: 403,
    GuardOutcome.PERMISSION_ERROR: 503,
    GuardOutcome.ACCESS_DENIED: 403,
}


@app.exception_handler(RouteGuardRejection)
async def route_guard_handler(_request: Request, exc: RouteGuardRejection):
    decision = exc.decision
    content = {"outcome": decision.outcome.value, "detail": decision.message}
    if decision.redirect_to:
        content["redirect_to"] = decision.redirect_to
    if decision.from_path:
        content["from"] = decision.from_path
    if decision.action:
        content["action"] = decision.action
    headers = {"Retry-After": "1"} if decision.outcome == GuardOutcome.LOADING else None
    return JSONResponse(status_code=GUARD_STATUS_CODES[decision.outcome], content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Create tables and the permission store registry."""
    log.info("Initializing database...")
    await init_db()
    app.state.permission_registry = PermissionStoreRegistry(SQLPermissionFetcher(AsyncSessionLocal))
    log.info("Database initialized successfully")


@app.on_event("shutdown")
async def shutdown():
    registry = getattr(app.state, "permission_registry", None)
    if registry is not None:
        registry.close_all()
    await dispose_db()


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "HR Portal Backend API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require an Appwrite JWT as Bearer token",
            "public_endpoints": ["/", "/health", "/references/request", "/references/submit"],
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(employee_router, prefix="/employees", tags=["employees"])
app.include_router(leave_router, prefix="/leaves", tags=["leaves"])
app.include_router(reference_router, prefix="/references", tags=["references"])
