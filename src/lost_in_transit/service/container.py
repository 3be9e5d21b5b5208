# src/lost_in_transit/service/container.py
"""Wires config, database, tracking gateway and pipelines together (used by the app and the CLI)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import sessionmaker

from lost_in_transit.api import (
    IntervalGate,
    ReplayClient,
    RequestsTransport,
    TrackingGateway,
    TrackingMoreClient,
    TrackingMoreConfig,
)
from lost_in_transit.models import EnvCfg
from lost_in_transit.pipelines.enrollment import MonitoringEnrollment
from lost_in_transit.pipelines.recheck import RecheckScheduler
from lost_in_transit.pipelines.verifier import OnDemandVerifier
from lost_in_transit.rules.policy import PolicyConfig
from lost_in_transit.store.db import create_engine_from_url, init_models, make_session_factory
from lost_in_transit.store.repository import ClaimLedger, EligibilityStore, ShipmentSource


def build_gateway(
    cfg: EnvCfg,
    *,
    replay_file: Optional[Path] = None,
    logger: Optional[logging.Logger] = None,
) -> TrackingGateway:
    """Live TrackingMore client, or a ReplayClient when a recorded file is given."""
    if replay_file is not None:
        client = ReplayClient(Path(replay_file))
        gate = None
    else:
        transport = RequestsTransport(timeout=cfg.TRACKING_TIMEOUT_SECONDS)
        client = TrackingMoreClient(
            TrackingMoreConfig(api_key=cfg.TRACKINGMORE_API_KEY, base_url=cfg.TRACKINGMORE_BASE_URL),
            transport,
            logger=logger,
        )
        gate = IntervalGate(cfg.TRACKING_CALL_INTERVAL_SECONDS)
    return TrackingGateway(client, gate, logger=logger)


@dataclass
class Services:
    cfg: EnvCfg
    session_factory: sessionmaker
    store: EligibilityStore
    shipments: ShipmentSource
    ledger: ClaimLedger
    gateway: TrackingGateway
    policy: PolicyConfig
    verifier: OnDemandVerifier
    scheduler: RecheckScheduler
    enrollment: MonitoringEnrollment


def build_services(
    cfg: EnvCfg,
    *,
    session_factory: Optional[sessionmaker] = None,
    gateway: Optional[TrackingGateway] = None,
    replay_file: Optional[Path] = None,
    create_tables: bool = True,
) -> Services:
    if session_factory is None:
        engine = create_engine_from_url(cfg.DATABASE_URL)
        if create_tables:
            init_models(engine)
        session_factory = make_session_factory(engine)

    gateway = gateway or build_gateway(cfg, replay_file=replay_file)
    policy = PolicyConfig.from_env(cfg)
    store = EligibilityStore(session_factory)
    shipments = ShipmentSource(session_factory)
    ledger = ClaimLedger(session_factory)

    return Services(
        cfg=cfg,
        session_factory=session_factory,
        store=store,
        shipments=shipments,
        ledger=ledger,
        gateway=gateway,
        policy=policy,
        verifier=OnDemandVerifier(
            shipments=shipments, store=store, ledger=ledger, gateway=gateway, config=policy),
        scheduler=RecheckScheduler(
            store=store,
            shipments=shipments,
            ledger=ledger,
            gateway=gateway,
            config=policy,
            batch_size=cfg.RECHECK_BATCH_SIZE,
            archive_batch_size=cfg.ARCHIVE_BATCH_SIZE,
            lease_seconds=cfg.RECHECK_LEASE_SECONDS,
        ),
        enrollment=MonitoringEnrollment(
            shipments=shipments,
            store=store,
            ledger=ledger,
            gateway=gateway,
            config=policy,
            min_days_old=policy.required_days_domestic,
        ),
    )
