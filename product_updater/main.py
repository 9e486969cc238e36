from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .admin import summarize_details
from .config import settings
from .integration import Integration
from .logging_utils import configure_logging
from .models import (
    ActionResult,
    DetailsSummary,
    HealthCheckResponse,
    LicenseSaveRequest,
    LicenseStatusResponse,
    LicenseSyncRequest,
    UpdateStateResponse,
)
from .scheduler import SyncScheduler


@lru_cache(maxsize=1)
def get_integration() -> Integration:
    configure_logging(settings.LOG_LEVEL)
    return Integration.from_settings(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run the periodic license sync for as long as the service is up.
    """
    sync_scheduler = None
    if settings.SCHEDULER_ENABLED:
        integration = app.dependency_overrides.get(get_integration, get_integration)()
        sync_scheduler = SyncScheduler()
        sync_scheduler.schedule(integration.orchestrator)
        sync_scheduler.start()
    app.state.sync_scheduler = sync_scheduler

    yield

    if sync_scheduler is not None:
        sync_scheduler.shutdown()


app = FastAPI(
    title="Product Updater Client Service",
    description="License and update management for an installed product",
    version=__version__,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _update_state(integration: Integration) -> UpdateStateResponse:
    product = integration.product
    entry = integration.registry.entry(product)
    return UpdateStateResponse(
        filePath=product.file_path,
        installedVersion=product.version,
        state=integration.registry.state(product),
        entry=entry.model_dump(mode="json") if entry else None,
    )


# API Endpoints
@app.post("/api/license", response_model=ActionResult)
def save_license(request: LicenseSaveRequest, integration: Integration = Depends(get_integration)):
    """
    Save the license key entered on the license page.

    An empty key deactivates the license. A key is stored only after the
    update server accepted it.
    """
    result = integration.actions.save(request.licenseKey, request.baseUrl)

    if result.is_error:
        raise HTTPException(status_code=400, detail=result.model_dump())

    return result


@app.post("/api/license/sync", response_model=ActionResult)
def sync_license(request: LicenseSyncRequest, integration: Integration = Depends(get_integration)):
    """
    Re-check the stored license key and refresh the license record.
    """
    result = integration.actions.sync(request.baseUrl)

    if result.is_error:
        raise HTTPException(status_code=400, detail=result.model_dump())

    return result


@app.get("/api/license/status", response_model=LicenseStatusResponse)
def get_license_status(integration: Integration = Depends(get_integration)):
    store = integration.license_store
    record = store.get_record()
    return LicenseStatusResponse(
        hasLicense=store.has_code(),
        status=store.status(),
        isActive=store.is_active(),
        renewalUrl=store.renewal_url(),
        license=record.model_dump(mode="json") if record else None,
    )


@app.get("/api/updates", response_model=UpdateStateResponse)
def get_update_state(integration: Integration = Depends(get_integration)):
    """
    Current registry state for this product, as the host sees it.
    """
    return _update_state(integration)


@app.post("/api/updates/check", response_model=UpdateStateResponse)
def check_for_updates(integration: Integration = Depends(get_integration)):
    """
    Run an update check now (served from the response cache when fresh).
    """
    integration.orchestrator.on_check_for_updates()
    return _update_state(integration)


@app.get("/api/details", response_model=DetailsSummary)
def get_details(integration: Integration = Depends(get_integration)):
    """
    Details panel for the license page.
    """
    result = integration.client.fetch_details()

    if not result.ok:
        raise HTTPException(status_code=502, detail=result.error.message)

    if result.data.details is None:
        raise HTTPException(status_code=502, detail=result.data.message or "Errors occurred. Try back later")

    return summarize_details(result.data.details, integration.product, integration.license_store)


@app.get("/health", response_model=HealthCheckResponse)
def health_check(integration: Integration = Depends(get_integration)):
    return {
        "status": "healthy",
        "service": "product-updater",
        "version": __version__,
        "productId": integration.product.product_id,
        "productVersion": integration.product.version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
