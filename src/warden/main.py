"""Entry point: `warden` console script or `python -m warden.main`."""

import structlog

from warden.app import App
from warden.config import Config
from warden.logging import setup_logging
from warden.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    structlog.get_logger(__name__).info(
        "warden_starting",
        host=config.host,
        port=config.port,
        session_max_count=config.session_max_count,
        sweep_interval_hours=config.session_sweep_interval_hours,
    )
    run_server(App(config), config)


if __name__ == "__main__":
    main()
