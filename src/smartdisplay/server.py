#!/usr/bin/env python3
"""
SmartDisplay Core Server

Starts the local control-plane API:
- HA alarm mirror and health/failsafe loop
- Alarm, guest, home and menu screens
- First-boot setup and settings

Usage:
    python -m smartdisplay.server
    # or
    smartdisplay --port 8090 --config data/runtime.json
"""

import argparse
import logging
import os
from pathlib import Path

import uvicorn

from .api.app import create_app
from .config import CoreConfig, EnvCredentials, RuntimeConfigStore
from .services.coordinator import Coordinator
from .services.notifier import HANotifier, LoggingNotifier


def main():
    parser = argparse.ArgumentParser(description="SmartDisplay Core Server")
    parser.add_argument("--host", default=os.environ.get("BIND_ADDR", "0.0.0.0"), help="Host to bind to")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8090")), help="Port to bind to")
    parser.add_argument("--config", default=os.environ.get("SMARTDISPLAY_CONFIG", "data/runtime.json"),
                        help="Runtime config JSON path")
    parser.add_argument("--log-level", default=os.environ.get("SMARTDISPLAY_LOG_LEVEL", "info"),
                        choices=["debug", "info", "warning", "error"])
    parser.add_argument("--notify-ha", action="store_true", help="Send owner notifications as HA events")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    credentials = EnvCredentials()
    coordinator = Coordinator(
        config=CoreConfig.from_env(),
        config_store=RuntimeConfigStore(Path(args.config)),
        credentials=credentials,
        notifier=HANotifier(credentials) if args.notify_ha else LoggingNotifier(),
    )
    app = create_app(coordinator)

    logging.getLogger(__name__).info(
        "[CORE] SmartDisplay listening on http://%s:%d (HA %s)",
        args.host, args.port, "configured" if credentials.load() else "not configured",
    )

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
