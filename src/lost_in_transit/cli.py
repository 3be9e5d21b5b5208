# src/lost_in_transit/cli.py
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config.env import EnvError, get_app_env
from .config.logging_config import get_logger


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lost-in-transit",
        description="Lost-in-transit claim eligibility: verify shipments, run the recheck sweep, enroll new shipments.",
    )
    p.add_argument(
        "--no-console",
        action="store_true",
        help="Disable console logging (file logging remains).",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )
    p.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also log to this file (rotated).",
    )
    p.add_argument(
        "--env-file",
        type=Path,
        default=Path(".env"),
        help="Path to the .env file to load. Default: ./.env",
    )
    p.add_argument(
        "--strict-env",
        action="store_true",
        help="Require TRACKINGMORE_API_KEY/RECHECK_SECRET to be present; otherwise exit 2.",
    )
    p.add_argument(
        "--replay-file",
        type=Path,
        default=None,
        help="JSON file of recorded TrackingMore bodies; used instead of the live provider.",
    )

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("recheck", help="Run one recheck sweep over active records.")
    sub.add_parser("enroll", help="Enroll undelivered shipments that are old enough to be at risk.")
    sub.add_parser("init-db", help="Create the database tables.")

    v = sub.add_parser("verify", help="Verify lost-in-transit eligibility for one shipment.")
    v.add_argument("shipment_id")
    v.add_argument(
        "--client-id",
        default=None,
        help="Comma-separated tenant ids the caller may access. Default: all tenants.",
    )

    s = sub.add_parser("serve", help="Serve the HTTP API with uvicorn.")
    s.add_argument("--host", default="127.0.0.1")
    s.add_argument("--port", type=int, default=8000)
    return p


def _print_json(obj) -> None:
    print(json.dumps(obj, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger = get_logger(
        "lost_in_transit",
        level=args.log_level,
        console=not args.no_console,
        log_file=args.log_file,
    )
    logger.debug("Logger initialized.")

    # Load env (don't fail unless user asked for strict)
    try:
        env_cfg = get_app_env(args.env_file, strict=args.strict_env)
        if args.strict_env:
            logger.info("Strict env passed; provider key and recheck secret present.")
        else:
            logger.debug("Env loaded (non-strict).")
    except EnvError as e:
        logger.error("Environment error: %s", e)
        return 2

    if args.replay_file is not None and not args.replay_file.is_file():
        logger.error("Replay file not found: %s", args.replay_file)
        return 2

    # Lazy imports to keep startup light
    if args.command == "serve":
        import uvicorn
        from .service.app import create_app

        app = create_app(env_cfg, replay_file=args.replay_file)
        logger.info("Serving on %s:%d", args.host, args.port)
        uvicorn.run(app, host=args.host, port=args.port, log_level=str(args.log_level).lower())
        return 0

    from .errors import LostInTransitError
    from .service.container import build_services

    try:
        services = build_services(env_cfg, replay_file=args.replay_file)
        if args.replay_file:
            logger.info("Replay mode enabled: %s", args.replay_file)

        if args.command == "init-db":
            logger.info("Database ready.")
            return 0
        if args.command == "recheck":
            _print_json(services.scheduler.run().to_dict())
        elif args.command == "enroll":
            _print_json(services.enrollment.run().to_dict())
        elif args.command == "verify":
            ids = [c.strip() for c in args.client_id.split(",") if c.strip()] if args.client_id else None
            _print_json(services.verifier.verify(args.shipment_id, ids).to_dict())
    except LostInTransitError as e:
        logger.error("%s", e)
        return 2
    except Exception as e:
        logger.exception("Command %s failed: %s", args.command, e)
        return 1

    logger.info("Done.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
