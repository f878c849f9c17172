"""
Run the authorization server.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

Configuration comes from a JSON/YAML file when given, otherwise from UCP_*
environment variables.
"""

import argparse
import logging
import sys

from aiohttp import web

from ..audit.logger import create_audit_logger
from ..core.config import Config
from ..errors import ConfigurationError
from .app import build_authorization_server


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Usage-control UMA authorization server")
    parser.add_argument("--config", help="JSON or YAML configuration file")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=4000)
    parser.add_argument("--audit-log", help="write audit events to this JSON lines file")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = Config.from_file(args.config) if args.config else Config.from_env()
        audit_logger = create_audit_logger("file", file_path=args.audit_log) if args.audit_log else None
        server = build_authorization_server(config, audit_logger=audit_logger)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    web.run_app(server.create_app(), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
