"""
Pool Parser Service: Main Entry Point
=====================================
Starts the Flask-based pool parsing service.

Usage:
    python main.py                         # Default: 0.0.0.0:5000
    python main.py --port 8000             # Custom port
    python main.py --images figures/       # Embed figure images
    python main.py --debug                 # Debug mode
"""

import argparse
import logging

from pool_parser.server import app, create_app

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Pool Parser Service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=5000, help="Bind port")
    parser.add_argument("--images", default=None, help="Figure image directory")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    args = parser.parse_args()

    create_app({"IMAGE_DIR": args.images})

    logger.info(f"Upload directory: {app.config['UPLOAD_DIR']}")
    logger.info(f"Starting server on {args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
