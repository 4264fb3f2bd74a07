"""
FastAPI application exposing instance inventory, metrics and usage summaries.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import InvalidParameterError, MonitoringError
from .models.api_models import (
    APIError,
    HealthResponse,
    MetricBundleResponse,
    MetricSeriesResponse,
    StatusResponse,
)
from .models.families import get_family
from .models.metrics import ResourceUsageSummary
from .models.types import ErrorKind, MetricKind, ResourceFamilyName
from .services.aws_clients import (
    AWSClientFactory,
    CloudWatchMetricBackend,
    EC2InventoryBackend,
    RDSInventoryBackend,
)
from .services.config import ConfigManager
from .services.inventory import InventoryService
from .services.monitoring import MonitoringService
from .utils.logging import configure_logging, get_logger

# Global application state
logger = get_logger(__name__)
app_state = {}

ERROR_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_PARAMETER: 400,
    ErrorKind.BACKEND_UNAVAILABLE: 503,
    ErrorKind.UNKNOWN: 502,
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        request.state.request_id = request_id

        logger.info(
            "Request started",
            method=request.method,
            path=str(request.url.path),
            query_params=str(request.query_params),
            client_host=request.client.host if request.client else None,
            request_id=request_id,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                request_id=request_id,
                error=str(e),
                process_time=round(time.time() - start_time, 4),
            )
            error_response = APIError(
                error="Internal server error",
                code="INTERNAL_ERROR",
                details={"request_id": request_id},
            )
            return JSONResponse(
                status_code=500,
                content=error_response.model_dump(mode="json"),
                headers={"X-Request-ID": request_id},
            )

        logger.info(
            "Request completed",
            status_code=response.status_code,
            process_time=round(time.time() - start_time, 4),
            request_id=request_id,
        )
        response.headers["X-Request-ID"] = request_id
        return response


def build_services(config_manager: ConfigManager) -> dict:
    """Create the shared AWS clients and the services built on them"""
    factory = AWSClientFactory(config_manager.aws_config)
    monitoring_service = MonitoringService(
        CloudWatchMetricBackend(factory.cloudwatch()),
        metrics_config=config_manager.metrics_config,
    )
    inventory_service = InventoryService(
        EC2InventoryBackend(factory.ec2()),
        RDSInventoryBackend(factory.rds()),
    )
    return {
        "config_manager": config_manager,
        "client_factory": factory,
        "monitoring_service": monitoring_service,
        "inventory_service": inventory_service,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Cloud Resource Monitor API")

    try:
        config_manager = ConfigManager(app_state.get("config_dir", "config"))
        app_state.update(build_services(config_manager))
        logger.info(
            "Application initialized successfully",
            region=config_manager.aws_config.region,
            families=[f.value for f in app_state["monitoring_service"].families],
        )
    except Exception as e:
        logger.error("Failed to initialize application", error=str(e))
        raise

    yield

    logger.info("Shutting down Cloud Resource Monitor API")
    monitoring_service = app_state.get("monitoring_service")
    if monitoring_service is not None:
        monitoring_service.close()


app = FastAPI(
    title="Cloud Resource Monitor API",
    description="Read-only inventory, utilization metrics and usage summaries for cloud resources",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies
def get_config_manager() -> ConfigManager:
    config_manager = app_state.get("config_manager")
    if not config_manager:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return config_manager


def get_monitoring_service() -> MonitoringService:
    service = app_state.get("monitoring_service")
    if not service:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def get_inventory_service() -> InventoryService:
    service = app_state.get("inventory_service")
    if not service:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


# Exception handlers
@app.exception_handler(MonitoringError)
async def monitoring_error_handler(request: Request, exc: MonitoringError):
    """Map typed query failures to HTTP status codes"""
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    log = logger.warning if status_code < 500 else logger.error
    log("Query failed", path=str(request.url.path), error=exc.message, **exc.details())

    error_response = APIError(
        error=exc.message,
        code=exc.kind.value.upper(),
        details=exc.details(),
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured response"""
    error_response = APIError(
        error=exc.detail,
        code=f"HTTP_{exc.status_code}",
        details={"status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions"""
    error_response = APIError(
        error=str(exc),
        code="VALIDATION_ERROR",
        details={"type": "ValueError"},
    )
    return JSONResponse(status_code=400, content=error_response.model_dump(mode="json"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error("Unhandled exception", error=str(exc), type=type(exc).__name__)
    error_response = APIError(
        error="An unexpected error occurred",
        code="INTERNAL_ERROR",
        details={"type": type(exc).__name__},
    )
    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


# Health check endpoints
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health check"""
    components = {}
    for name in ("config_manager", "monitoring_service", "inventory_service"):
        components[name] = "healthy" if app_state.get(name) else "not_initialized"

    return HealthResponse(status="healthy", components=components)


@app.get("/health/live")
async def liveness_probe():
    """Kubernetes liveness probe"""
    return {"status": "alive"}


@app.get("/health/ready")
async def readiness_probe():
    """Kubernetes readiness probe"""
    if not app_state.get("monitoring_service") or not app_state.get("inventory_service"):
        raise HTTPException(status_code=503, detail="Service not ready")
    return {"status": "ready"}


@app.get("/status", response_model=StatusResponse)
async def get_status(
    config_manager: ConfigManager = Depends(get_config_manager),
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """Get configuration and enabled resource families"""
    return StatusResponse(config=config_manager.as_dict(), families=monitoring.families)


@app.get("/{family}/health")
async def backend_health(
    family: ResourceFamilyName,
    inventory: InventoryService = Depends(get_inventory_service),
):
    """Probe a family's AWS backend"""
    health = await inventory.check_health(family)
    return JSONResponse(
        status_code=200 if health.is_up else 503,
        content=health.model_dump(mode="json"),
    )


# Inventory endpoints
# Listing state filter per family
LISTING_STATES = {
    ResourceFamilyName.EC2: "running",
    ResourceFamilyName.RDS: "available",
}


@app.get("/{family}/instances")
async def list_instances(
    family: ResourceFamilyName,
    state: Optional[str] = Query(
        None, description="Lifecycle filter: running (ec2) or available (rds)"
    ),
    inventory: InventoryService = Depends(get_inventory_service),
):
    """All instances of a family, optionally only running / available ones"""
    if state is None:
        instances = await inventory.list_instances(family)
    elif state != LISTING_STATES[family]:
        raise InvalidParameterError(
            f"Unsupported state filter for {family.value}: {state!r} "
            f"(expected {LISTING_STATES[family]!r})"
        )
    elif family == ResourceFamilyName.EC2:
        instances = await inventory.list_running_instances()
    else:
        instances = await inventory.list_available_db_instances()
    return [i.model_dump(mode="json") for i in instances]


@app.get("/{family}/instances/{resource_id}")
async def get_instance(
    family: ResourceFamilyName,
    resource_id: str,
    inventory: InventoryService = Depends(get_inventory_service),
):
    """One instance by identifier"""
    instance = await inventory.get_instance(family, resource_id)
    return instance.model_dump(mode="json")


# Metric endpoints
def _parse_kinds(family: ResourceFamilyName, kinds: Optional[str]) -> List[MetricKind]:
    if not kinds:
        return list(get_family(family).metrics)
    try:
        return [MetricKind(k.strip()) for k in kinds.split(",") if k.strip()]
    except ValueError as e:
        raise InvalidParameterError(str(e)) from e


@app.get("/{family}/instances/{resource_id}/metrics", response_model=MetricBundleResponse)
async def get_metrics(
    family: ResourceFamilyName,
    resource_id: str,
    kinds: Optional[str] = Query(None, description="Comma-separated metric kinds"),
    period: Optional[int] = Query(None, gt=0, description="Aggregation period in seconds"),
    hours: Optional[int] = Query(None, gt=0, description="Lookback in hours"),
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """Several metrics of one resource over the same window"""
    return await monitoring.get_metrics(
        family, resource_id, _parse_kinds(family, kinds), period=period, hours=hours
    )


@app.get(
    "/{family}/instances/{resource_id}/metrics/{metric_kind}",
    response_model=MetricSeriesResponse,
)
async def get_metric(
    family: ResourceFamilyName,
    resource_id: str,
    metric_kind: MetricKind,
    period: Optional[int] = Query(None, gt=0, description="Aggregation period in seconds"),
    hours: Optional[int] = Query(None, gt=0, description="Lookback in hours"),
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """One metric series with its window statistics"""
    return await monitoring.get_metric(
        family, resource_id, metric_kind, period=period, hours=hours
    )


@app.get(
    "/{family}/instances/{resource_id}/usage-summary",
    response_model=ResourceUsageSummary,
)
async def get_usage_summary(
    family: ResourceFamilyName,
    resource_id: str,
    monitoring: MonitoringService = Depends(get_monitoring_service),
):
    """Trailing 24 hour usage summary"""
    return await monitoring.get_usage_summary(family, resource_id)


def run_server(
    host: str = "0.0.0.0",
    port: int = 8000,
    workers: int = 1,
    log_level: str = "info",
    config_dir: str = "config",
    reload: bool = False,
    log_format: str = "human",
):
    """Run the FastAPI server"""
    configure_logging(level=log_level, format_type=log_format, component="api")

    logger.info(
        "Starting Cloud Resource Monitor API server",
        host=host,
        port=port,
        workers=workers,
        config_dir=config_dir,
        reload=reload,
    )

    app_state["config_dir"] = config_dir

    uvicorn_config = {
        "host": host,
        "port": port,
        "log_level": log_level.lower(),
        "access_log": False,  # RequestLoggingMiddleware logs requests
    }
    if reload:
        uvicorn_config["reload"] = True
    else:
        uvicorn_config["workers"] = workers

    uvicorn.run("cloud_resource_monitor.api:app", **uvicorn_config)


if __name__ == "__main__":
    run_server()
