"""Run the gateway: ``python -m nitrogate``."""

from __future__ import annotations

import logging

import uvicorn

from nitrogate.app import create_app
from nitrogate.config import GatewayConfig


def main() -> None:
    config = GatewayConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(config),
        host=config.listen_addr,
        port=config.listen_port,
        backlog=config.backlog,
        timeout_keep_alive=int(config.keepalive_timeout_secs),
        access_log=config.access_log,
    )


if __name__ == "__main__":
    main()
