"""Text interface showing live arrivals for a Seoul subway station."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .languages import LANGUAGES_BY_ID
from .models import DirectionGroup
from .preferences import Preferences
from .station_tracker import StationBoard, SubwayTracker

logger = logging.getLogger(__name__)


def render_group_header(tracker: SubwayTracker, board: StationBoard, group: DirectionGroup) -> str:
    """One-line heading: line, then previous › current › next ⋯ destination."""
    if group.destination is None or group.next_station is None:
        return f"[{group.line}] {group.line_name}"

    parts = []
    if group.previous_station is not None:
        parts.append(f"{tracker.station_name(group.previous_station)} ›")
    parts.append(board.station.name(tracker.language.id) or board.station.id)
    parts.append(f"› {tracker.station_name(group.next_station)}")
    if group.destination != group.next_station:
        parts.append(f"⋯ {tracker.station_name(group.destination)}")
    return f"[{group.line}] " + " ".join(parts)


def render_board(tracker: SubwayTracker) -> str:
    """Plain-text rendering of the selected station's board."""
    board = tracker.board
    if board is None:
        return f"No station matches '{tracker.search_input}'"

    lines: List[str] = []
    if board.error is not None:
        lines.append(f"! {board.error}")
    if not board.groups:
        lines.append("Loading..." if board.loading else "No upcoming trains")

    for group in board.groups:
        lines.append(render_group_header(tracker, board, group))
        for cell in group.trains:
            marker = "▼" if cell.expanded else "►"
            lines.append(f"  {marker} {tracker.countdown(cell):>14}  {cell.record.eta_message}")
            if cell.expanded and cell.congestion is not None:
                if cell.congestion.error is not None:
                    lines.append(f"      ! {cell.congestion.error}")
                for reading in cell.congestion.value:
                    lines.append(f"      car {reading.car:2d}: {reading.label}")
        lines.append("")

    return "\n".join(lines).rstrip()


async def run(tracker: SubwayTracker, once: bool = False, expand_first: bool = False) -> None:
    """Keep the board on screen, redrawing on every clock tick."""
    logger.info(f"Showing arrivals for {tracker.search_input!r}")
    tracker.start()

    def redraw(_clock) -> None:
        # Clear screen, cursor home
        sys.stdout.write("\x1b[2J\x1b[H")
        sys.stdout.write(render_board(tracker) + "\n")
        sys.stdout.flush()

    try:
        if once:
            if tracker.board is not None:
                await tracker.board.arrivals.wait()
                if expand_first and tracker.board.groups:
                    poller = tracker.board.expand(tracker.board.groups[0].trains[0].train)
                    await poller.wait()
            print(render_board(tracker))
            return

        tracker.clock.subscribe(redraw)
        while True:
            await asyncio.sleep(3600)
    finally:
        tracker.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Live Seoul subway arrivals by direction")
    parser.add_argument("station", nargs="*", help="Station name in the selected language")
    parser.add_argument("--lang", choices=sorted(LANGUAGES_BY_ID), help="Display language")
    parser.add_argument("--link", help='Link fragment such as "/ko/시청"; overrides saved values')
    parser.add_argument("--near", nargs=2, type=float, metavar=("LAT", "LNG"), help="List stations nearest first")
    parser.add_argument("--list", action="store_true", help="List stations and exit")
    parser.add_argument("--once", action="store_true", help="Print the board once and exit")
    parser.add_argument("--expand", action="store_true", help="With --once, show congestion of the next train")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    tracker = SubwayTracker(preferences=Preferences(), fragment=args.link)
    if args.lang:
        tracker.set_language_keep_station(LANGUAGES_BY_ID[args.lang])
    if args.station:
        tracker.set_search_input(" ".join(args.station))

    if args.list or args.near:
        lat, lng = args.near if args.near else (None, None)
        for station in tracker.station_choices(lat, lng):
            print(station.name(tracker.language.id) or station.id)
        tracker.close()
        return 0

    if tracker.selected_station is None:
        print(f"Station not found: '{tracker.search_input}'")
        print("Try --list to see available stations")
        tracker.close()
        return 1

    try:
        asyncio.run(run(tracker, once=args.once, expand_first=args.expand))
    except KeyboardInterrupt:
        print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
