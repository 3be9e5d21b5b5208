# src/lost_in_transit/service/app.py
from __future__ import annotations

import secrets
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from lost_in_transit.api.gateway import TrackingGateway
from lost_in_transit.config.logging_config import component_logger
from lost_in_transit.errors import AccessDenied, ShipmentNotFound
from lost_in_transit.models import EligibilityStatus, EnvCfg
from lost_in_transit.rules.indicators import eligibility_view, records_frame, status_counts
from lost_in_transit.utils.dates import utcnow
from .container import Services, build_services
from .schemas import (
    EligibilityItem,
    EligibilityStats,
    EnrollResponse,
    Health,
    RecheckResponse,
    VerifyResponse,
)

logger = component_logger("service")


def get_services(request: Request) -> Services:
    return request.app.state.services


def _client_ids(raw: Optional[str]) -> List[str]:
    return [c.strip() for c in (raw or "").split(",") if c.strip()]


def require_client_ids(x_client_id: Optional[str] = Header(default=None)) -> List[str]:
    ids = _client_ids(x_client_id)
    if not ids:
        raise HTTPException(status_code=401, detail="Missing X-Client-Id header")
    return ids


def require_recheck_secret(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> None:
    expected = services.cfg.RECHECK_SECRET
    scheme, _, token = (authorization or "").partition(" ")
    if not expected or scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), expected):
        raise HTTPException(status_code=401, detail="Unauthorized")


shipments_router = APIRouter(prefix="/shipments", tags=["shipments"])
eligibility_router = APIRouter(prefix="/eligibility", tags=["eligibility"])
internal_router = APIRouter(prefix="/internal", tags=["internal"],
                            dependencies=[Depends(require_recheck_secret)])


@shipments_router.post("/{shipment_id}/verify-lost-in-transit", response_model=VerifyResponse)
def verify_lost_in_transit(
    shipment_id: str,
    client_ids: List[str] = Depends(require_client_ids),
    services: Services = Depends(get_services),
):
    try:
        result = services.verifier.verify(shipment_id, client_ids)
    except ShipmentNotFound as ex:
        raise HTTPException(status_code=404, detail=str(ex))
    except AccessDenied as ex:
        raise HTTPException(status_code=403, detail=str(ex))
    return result.to_dict()


def _scoped_client_ids(requested: Optional[str], allowed: List[str]) -> List[str]:
    """Requested tenants, which must all be in the caller's header; defaults to the header's list."""
    ids = _client_ids(requested)
    if not ids:
        return allowed
    denied = [c for c in ids if c not in allowed]
    if denied:
        raise HTTPException(status_code=403, detail=f"Access denied to client(s): {', '.join(denied)}")
    return ids


@eligibility_router.get("", response_model=list[EligibilityItem])
def list_eligibility(
    client_id: Optional[str] = Query(default=None),
    status: Optional[EligibilityStatus] = Query(default=None),
    client_ids: List[str] = Depends(require_client_ids),
    services: Services = Depends(get_services),
):
    ids = _scoped_client_ids(client_id, client_ids)
    records = services.store.list(client_ids=ids, status=status)
    return eligibility_view(records, today=utcnow().date())


@eligibility_router.get("/stats", response_model=EligibilityStats)
def eligibility_stats(
    client_id: Optional[str] = Query(default=None),
    client_ids: List[str] = Depends(require_client_ids),
    services: Services = Depends(get_services),
):
    ids = _scoped_client_ids(client_id, client_ids)
    counts = status_counts(records_frame(services.store.list(client_ids=ids)))
    return {"total": sum(counts.values()), **counts}


@internal_router.post("/recheck", response_model=RecheckResponse)
def trigger_recheck(services: Services = Depends(get_services)):
    return services.scheduler.run().to_dict()


@internal_router.post("/enroll", response_model=EnrollResponse)
def trigger_enroll(services: Services = Depends(get_services)):
    return services.enrollment.run().to_dict()


def create_app(
    env_cfg: Optional[EnvCfg] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    gateway: Optional[TrackingGateway] = None,
    replay_file: Optional[Path] = None,
) -> FastAPI:
    cfg = env_cfg or EnvCfg()
    services = build_services(cfg, session_factory=session_factory, gateway=gateway,
                              replay_file=replay_file)

    app = FastAPI(title="Lost-in-Transit Claim Eligibility", version="0.1.0")
    app.state.services = services

    @app.get("/health", response_model=Health)
    def health():
        try:
            with services.session_factory() as s:
                s.execute(text("SELECT 1"))
            db = "ok"
        except Exception as ex:
            logger.warning("Health check: database unavailable: %s", ex)
            db = "unavailable"
        return {"status": "ok" if db == "ok" else "degraded", "database": db}

    app.include_router(shipments_router)
    app.include_router(eligibility_router)
    app.include_router(internal_router)
    logger.info("App created (database=%s)", cfg.DATABASE_URL.split(":", 1)[0])
    return app
