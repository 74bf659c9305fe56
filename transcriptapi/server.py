import sys

from dotenv import load_dotenv

from .app.main import create_app
from .app.utils import setup_logger
from .pipeline.config import Settings


def main():
    load_dotenv()
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    logger = setup_logger("transcript-api", settings.log_level)
    logger.info(f"[MAIN] Starting transcript API on port {settings.port}")
    create_app(settings).run()


if __name__ == "__main__":
    main()
