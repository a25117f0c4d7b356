"""CLI entry point for Panchang queries.

    uv run panchang 2024-01-15 --lat 17.38333 --lng 78.4666 --tz 5.5

Prints the response as JSON. Exit status is 1 when the request failed.
"""

from dotenv import load_dotenv

load_dotenv()

import argparse  # noqa: E402
import json  # noqa: E402
import logging  # noqa: E402
import sys  # noqa: E402

from vedicpanchang.compute import run  # noqa: E402
from vedicpanchang.config import get_settings  # noqa: E402


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="panchang",
        description="Vedic Panchang and Muhurta windows for a date and place.",
    )
    parser.add_argument("date", help="Civil date, YYYY-MM-DD")
    parser.add_argument("--lat", type=float, help="Latitude in degrees (north positive)")
    parser.add_argument("--lng", type=float, help="Longitude in degrees (east positive)")
    parser.add_argument(
        "--tz",
        type=float,
        help="UTC offset in hours; looked up from the coordinates when omitted",
    )
    parser.add_argument(
        "--no-muhurta",
        action="store_true",
        help="Omit the Muhurta calculations",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    request = {
        "date": args.date,
        "latitude": args.lat,
        "longitude": args.lng,
        "timezoneOffsetHours": args.tz,
    }
    response = run(request, settings=settings, include_muhurta=not args.no_muhurta)
    print(json.dumps(response, indent=2, ensure_ascii=False))
    return 0 if response["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
