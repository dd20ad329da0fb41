"""Command line report for the MetObs aggregates."""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional, TextIO

from .client import MetObsError, SmhiClient
from .config import get_config
from .decoding import round_half_away
from .service import WeatherService

logger = logging.getLogger(__name__)

COMMANDS = ("all", "average", "rainfall", "stream")


def configure_logging(level: str) -> None:
    """Configure root logging for the command line process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # Connection pool chatter drowns the report at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WeatherInsight MetObs report (SMHI open data)")
    parser.add_argument(
        "command",
        nargs="?",
        default="all",
        choices=COMMANDS,
        help="Report to produce (default: all)"
    )
    parser.add_argument(
        "--station",
        type=int,
        default=None,
        help="Station id for the rainfall total (default: configured station, Lund)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop the temperature stream after this many seconds"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Stop the temperature stream after this many stations"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: METOBS_LOG_LEVEL or INFO)"
    )
    return parser


async def print_average(service: WeatherService, out: TextIO) -> None:
    average = await service.compute_average_temperature()
    if average is None:
        print("No temperature data available for the latest hour.", file=out)
    else:
        print(f"Average temperature in Sweden (latest hour): {average:.1f} °C", file=out)


async def print_rainfall(service: WeatherService, out: TextIO, station_id: Optional[int] = None) -> None:
    total_mm, months = await service.compute_rainfall_total(station_id)
    place = "Lund" if station_id is None else f"station {station_id}"
    if months:
        print(f"Total rainfall in {place} for latest months [{', '.join(months)}]: {total_mm:.1f} mm", file=out)
    else:
        print(f"No {place} rainfall data found.", file=out)


async def print_stream(
    service: WeatherService,
    out: TextIO,
    timeout: Optional[float] = None,
    limit: Optional[int] = None,
) -> int:
    """Print station readings as they arrive; returns the number printed."""
    printed = 0

    async def consume() -> None:
        nonlocal printed
        stream = service.stream_station_temperatures()
        try:
            async for station_id, name, temperature in stream:
                print(f"[{station_id}] {name}: {round_half_away(temperature, 1):.1f} °C", file=out)
                printed += 1
                if limit is not None and printed >= limit:
                    break
        finally:
            await stream.aclose()

    print("\nStreaming station temperatures (Ctrl+C to cancel)...", file=out)
    try:
        await asyncio.wait_for(consume(), timeout)
    except asyncio.TimeoutError:
        logger.info(f"Temperature stream stopped after {timeout}s")
    print("Stopped.", file=out)
    return printed


async def run(args: argparse.Namespace, service: WeatherService, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    if args.command in ("all", "average"):
        await print_average(service, out)
    if args.command in ("all", "rainfall"):
        await print_rainfall(service, out, args.station)
    if args.command in ("all", "stream"):
        await print_stream(service, out, timeout=args.timeout, limit=args.limit)


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(args.log_level or config.log_level)

    with SmhiClient(config) as client:
        service = WeatherService(client, config)
        try:
            asyncio.run(run(args, service))
        except (KeyboardInterrupt, asyncio.CancelledError):
            print("Cancelled by user.")
            return 130
        except MetObsError as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
