from fastapi import FastAPI, Request
from dotenv import load_dotenv

load_dotenv()
from contextlib import asynccontextmanager
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from database import Base, engine
from datetime import datetime
import os
import models  # noqa: F401  registers every table on Base.metadata
import routers.suppliers as suppliers
import routers.inventory_items as inventory_items
import routers.inventory_transactions as inventory_transactions
import routers.purchases as purchases
import routers.supplier_advances as supplier_advances
import routers.product_models as product_models
import routers.charges as charges
import routers.production as production
import routers.audit_log as audit_log
from utils.exceptions import LedgerError
import logging
from fastapi.openapi.utils import get_openapi


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

if _env_flag("LOG_TO_FILE", "true"):
    LOG_DIR = os.getenv("LOG_DIR", "logs")
    os.makedirs(LOG_DIR, exist_ok=True)

    # One log file per start-up
    current_time_str = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    LOG_FILE = os.path.join(LOG_DIR, f"app_{current_time_str}.log")
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, filename=LOG_FILE, filemode='a')
else:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

if not any(type(handler) is logging.StreamHandler for handler in logging.getLogger().handlers):
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(console_handler)

logger = logging.getLogger(__name__)
logger.info("Application starting up...")


if _env_flag("AUTO_CREATE_TABLES", "true"):
    Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if _env_flag("ENABLE_SCHEDULER", "false"):
        from scheduler import scheduler
        scheduler.start()
        logger.info("Reconciliation scheduler started")
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
        logger.info("Reconciliation scheduler stopped")


app = FastAPI(lifespan=lifespan)


allowed_origins_str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173"
)

allowed_origins = [origin.strip() for origin in allowed_origins_str.split(',') if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "kind": "ValidationError",
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(exc.errors())},
            }
        },
    )


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Inventory Ledger API",
        version="1.0.0",
        description="Inventory valuation, purchasing, supplier advances and production costing",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    openapi_schema["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi


app.include_router(suppliers.router)
app.include_router(inventory_items.router)
app.include_router(inventory_transactions.router)
app.include_router(purchases.router)
app.include_router(supplier_advances.router)
app.include_router(product_models.router)
app.include_router(charges.router)
app.include_router(production.router)
app.include_router(audit_log.router)

@app.get("/")
async def test_route():
    return {"message": "Inventory ledger service is running"}
