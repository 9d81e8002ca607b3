# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""
Tagger API server
"""

import argparse

import uvicorn

from tagger.config import settings
from tagger.main import create_app


def main(args):
    cfg = settings.model_copy(update={"HOST": args.host, "PORT": args.port})
    uvicorn.run(create_app(cfg), host=cfg.HOST, port=cfg.PORT, log_level=args.log_level)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Image upload & classification server", formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--host", type=str, default=settings.HOST, help="Interface on which the server listens")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Port on which the webserver will be run")
    parser.add_argument("--log-level", type=str, default="info", help="Log level of the uvicorn server")
    args = parser.parse_args(argv)
    if not 0 < args.port < 65536:
        parser.error(f"invalid port: {args.port}")

    return args


def run():
    main(parse_args())


if __name__ == "__main__":
    run()
