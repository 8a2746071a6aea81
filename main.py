"""CLI entrypoint for the timelapse maker."""

import logging
import sys

from timelapse_maker.app import TimelapseMaker
from timelapse_maker.errors import CatalogError, ConfigError


def main() -> None:
    """Instantiate the maker facade and start the scheduler."""
    try:
        maker = TimelapseMaker()
    except (ConfigError, CatalogError) as exc:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("timelapse_maker").critical("Unable to start: %s", exc)
        sys.exit(1)
    maker.run()


if __name__ == "__main__":
    main()
