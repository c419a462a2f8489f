from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from dotenv import load_dotenv

load_dotenv()
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from medsupply.database import Base, engine
from datetime import datetime
import medsupply.models  # noqa: F401  registers every table on Base.metadata
import medsupply.routers.purchase_orders as purchase_orders
import medsupply.routers.invoice_receivings as invoice_receivings
import medsupply.routers.quality_control as quality_control
import medsupply.routers.warehouse_approvals as warehouse_approvals
import medsupply.routers.inventory as inventory
import medsupply.routers.portfolios as portfolios
import medsupply.routers.principals as principals
import medsupply.routers.categories as categories
import medsupply.routers.products as products
import medsupply.routers.branches as branches
import medsupply.routers.warehouses as warehouses
import medsupply.routers.doctors as doctors
import medsupply.routers.hospitals as hospitals
import medsupply.routers.dashboard as dashboard
import medsupply.routers.users as users
import medsupply.routers.permissions as permissions
import medsupply.routers.workflow as workflow
from medsupply.utils.errors import ValidationFailed, WorkflowActionError
import os
import logging
from fastapi.openapi.utils import get_openapi


LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
os.makedirs(LOG_DIR, exist_ok=True)

# One log file per process start
current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
LOG_FILE = os.path.join(LOG_DIR, f"app_{current_time_str}.log")

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename=LOG_FILE,
    filemode='a'
)

# Mirror the file log on the console
console_handler = logging.StreamHandler()
console_handler.setLevel(LOG_LEVEL)
console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logging.getLogger().addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info("Application starting up...")


# Create database tables
Base.metadata.create_all(bind=engine)

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if SCHEDULER_ENABLED:
        from medsupply.scheduler import scheduler
        scheduler.start()
        logger.info("Background scheduler started")
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


app = FastAPI(lifespan=lifespan)


allowed_origins_str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173"
)
allowed_origins = [origin.strip() for origin in allowed_origins_str.split(',')]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="MedSupply API",
        version="1.0.0",
        description="API for the MedSupply pharmaceutical back office",
        routes=app.routes,
    )
    openapi_schema["components"]["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    # Apply security globally to all endpoints
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


def _error(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errors": errors or [], "data": None},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return _error(422, "Validation failed", errors)


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    logger.info(f"{request.method} {request.url.path} rejected: {exc.as_list()}")
    return _error(422, exc.message, exc.as_list())


@app.exception_handler(WorkflowActionError)
async def workflow_action_handler(request: Request, exc: WorkflowActionError):
    logger.warning(f"{request.method} {request.url.path} refused: {exc.message}")
    return _error(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error(500, "Internal server error")


app.include_router(purchase_orders.router)
app.include_router(invoice_receivings.router)
app.include_router(quality_control.router)
app.include_router(warehouse_approvals.router)
app.include_router(inventory.router)
app.include_router(portfolios.router)
app.include_router(principals.router)
app.include_router(categories.router)
app.include_router(products.router)
app.include_router(branches.router)
app.include_router(warehouses.router)
app.include_router(doctors.router)
app.include_router(hospitals.router)
app.include_router(dashboard.router)
app.include_router(users.router)
app.include_router(permissions.router)
app.include_router(workflow.router)


@app.get("/")
async def root():
    return {"success": True, "message": "Welcome to the MedSupply API!", "data": None}
