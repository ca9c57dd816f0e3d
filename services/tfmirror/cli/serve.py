"""
Server entrypoint for the terraform mirror.

Run via: python -m tfmirror.cli.serve   (or the ``tf-mirror`` console script)

Reads configuration from environment variables (TF_MIRROR_*) and the
optional YAML file; see tfmirror.config. Uvicorn handles SIGINT/SIGTERM and
drains in-flight requests for up to ``write_timeout`` seconds.
"""

import uvicorn

from tfmirror.api.app import create_app
from tfmirror.config import settings
from tfmirror.logging_config import configure_logging


def main() -> None:
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        timeout_keep_alive=int(settings.read_timeout),
        timeout_graceful_shutdown=int(settings.write_timeout),
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
