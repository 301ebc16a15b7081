import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from config import settings
from database import Base, engine
from exceptions import register_exception_handlers
from logging_config import configure_logging
from routes import (
    audit_routes, category_routes, good_out_request_routes, inventory_routes, report_routes, supplier_routes
)
from services.event_publisher import LoggingEventPublisher

# Make sure every table is registered on Base before create_all
from models import AuditTrail, Category, GoodOutRequest, InventoryItem, InventoryMovement, Supplier, User  # noqa: F401

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="ISP Inventory Ledger", debug=settings.DEBUG)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="ISP Inventory Ledger",
        version="1.0.0",
        description="Inventory items, stock movements and goods-out approvals",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    for path in openapi_schema["paths"]:
        for method in openapi_schema["paths"][path]:
            if "security" not in openapi_schema["paths"][path][method]:
                openapi_schema["paths"][path][method]["security"] = [{"BearerAuth": []}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# Replaced by a websocket broadcaster in deployments that push live updates
app.state.event_publisher = LoggingEventPublisher()

register_exception_handlers(app)


@app.on_event("startup")
async def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", engine.url.get_backend_name())
    logger.info("Starting inventory service in %s mode", settings.ENVIRONMENT)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    return {"success": True, "message": "OK", "data": {"environment": settings.ENVIRONMENT}}


app.include_router(inventory_routes.router, prefix="/inventory", tags=["Inventory"])
app.include_router(good_out_request_routes.router, prefix="/good-out-requests", tags=["Good Out Requests"])
app.include_router(category_routes.router, prefix="/categories", tags=["Category"])
app.include_router(supplier_routes.router, prefix="/suppliers", tags=["Supplier"])
app.include_router(report_routes.router, prefix="/reports", tags=["Reports"])
app.include_router(audit_routes.router, prefix="/audit", tags=["Audit"])
