"""Uvicorn server runner with custom configuration."""

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from warden.app import App
from warden.config import Config
from warden.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    """Run the Uvicorn server with custom logging configuration."""
    fastapi_app = create_fastapi_app(app, config)

    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - %(client_addr)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    # Client addresses are resolved by the identity pipeline against trusted_proxies
    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=log_config,
        access_log=True,
        proxy_headers=False,
    )
