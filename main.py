import argparse
import logging

from activity_tracker import config
from activity_tracker.app import create_app


parser = argparse.ArgumentParser(description="Coding Activity Tracker entry point.")
parser.add_argument(
    "--fallback-only",
    action="store_true",
    help="Skip the primary database and write to local files only.",
)
parser.add_argument("--host", default="0.0.0.0", help="Bind address.")
parser.add_argument("--port", type=int, default=8000, help="Bind port.")
args, _ = parser.parse_known_args()

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

use_primary = not (args.fallback_only or config.USE_FILE_STORAGE_FALLBACK)
if not use_primary:
    logger.info("Running in FALLBACK ONLY mode: activities go to local files.")

app = create_app(use_primary=use_primary)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)
