#!/usr/bin/env python3
"""Maintenance helper that rebuilds stored QR code references.

Every memorial stores a QR image URL derived from its public URL and the
configured ``PUBLIC_BASE_URL``/``QR_SERVICE_URL``. Run this after changing
either setting so printed plaques resolve through the new universal link.
Safe to run repeatedly; unchanged rows are left alone.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from dotenv import load_dotenv


def _ensure_project_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_path()
load_dotenv()

from remembrance import create_app  # noqa: E402
from remembrance.services import publication  # noqa: E402

LOGGER = logging.getLogger("regenerate_qr_codes")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration name to load (development, testing, production)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging output",
    )
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        force=True,
    )


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    app = create_app(args.config)
    if not app.config.get("PUBLIC_BASE_URL"):
        LOGGER.error("PUBLIC_BASE_URL is not configured. Aborting.")
        return 1

    with app.app_context():
        updated = publication.regenerate_qr_codes(logger=LOGGER)

    LOGGER.info("Done; %s memorials updated", updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
