"""
Entrypoint for running the API in development.
In production run create_app() behind a WSGI server (gunicorn/uwsgi).
"""
import logging
import os
import sys

from utils.settings import ConfigError
from . import create_app


def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        app = create_app()
    except ConfigError as exc:
        for problem in exc.problems:
            logging.getLogger("api").error("config: %s", problem)
        sys.exit(2)

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    debug = bool(app.config.get("DEBUG", False))
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
