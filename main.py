#!/usr/bin/env python3
"""
tikr - Audio Player with Named, Auto-Repeating Loops

Usage:
    python main.py serve [--host HOST] [--port PORT]
    python main.py add FILE
    python main.py list
    python main.py play TRACK_ID [--ffmpeg PATH]

Common options: --data-dir DIR, --debug
"""

import os
import sys
import shutil
import logging
import argparse
from datetime import datetime

import config
from backend import LoopRegistry, LoopSession, MediaTransport, PygameMediaResource, TikrError
from backend.shortcuts import handle_key
from backend.web_server import WebServer
from utils import (
    format_position, format_region, parse_time,
    get_volume_preference, set_volume_preference,
)

CONSOLE_HELP = """\
Keys: space/k play-pause | left/right +-5s | j/l +-10s | up/down volume | m mute
      s mark start | e mark end | u toggle looping | 1-9 select loop
Commands: save [LABEL] | list | seek TIME | delete N | status | help | quit"""

# =============================================================================
# UTILS
# =============================================================================

def setup_logging(debug: bool = False) -> logging.Logger:
    os.makedirs(config.LOG_DIR, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(config.LOG_DIR, f"tikr_{timestamp}.log")

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_file)]
    )
    return logging.getLogger("Tikr")


def find_ffmpeg() -> str:
    """
    Find FFmpeg (only its ffprobe sibling is used, for track durations).
    PRIORITY 1: Check sys._MEIPASS (PyInstaller bundles --add-binary files here).
    PRIORITY 2: Check the local folder (next to the .exe or script).
    PRIORITY 3: Fall back to the name and let PATH lookup happen at call time.
    """
    binary_name = "ffmpeg.exe" if os.name == 'nt' else "ffmpeg"

    for base in (getattr(sys, '_MEIPASS', None), config.BASE_DIR):
        if base:
            candidate = os.path.join(base, binary_name)
            if os.path.isfile(candidate):
                return candidate

    return shutil.which("ffmpeg") or "ffmpeg"


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_serve(args, registry, logger) -> int:
    server = WebServer(registry, host=args.host, port=args.port)
    url = server.start()
    logger.info(f"tikr server running on {url}")
    try:
        server.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        server.stop()
    return 0


def cmd_add(args, registry, logger) -> int:
    try:
        with open(args.file, 'rb') as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Could not read {args.file}: {e}")
        return 1

    track = registry.create_track(data, os.path.basename(args.file))
    print(f"{track.id}  {track.original_name}")
    return 0


def cmd_list(args, registry, logger) -> int:
    tracks = registry.list_tracks()
    if not tracks:
        print("No tracks. Add one with: main.py add FILE")
    for track in tracks:
        loops = registry.list_regions(track.id)
        print(f"{track.id}  {track.original_name}  ({len(loops)} loops)")
    return 0


def print_loops(session: LoopSession) -> None:
    if not session.regions:
        print("No loops saved for this track.")
    for index, region in enumerate(session.regions):
        active = session.active_region is not None and session.active_region.id == region.id
        print(format_region(index, region, active=active))


def run_console(session: LoopSession, stream=sys.stdin) -> None:
    """Drive a session from text lines until 'quit' or end of input."""
    print(CONSOLE_HELP)
    for raw in stream:
        line = raw.rstrip("\n")
        command, _, rest = line.strip().partition(" ")

        try:
            if line == " ":
                handle_key(session, " ")
            elif command and not rest and handle_key(session, command):
                pass
            elif command in ("quit", "q", "exit"):
                break
            elif command == "help":
                print(CONSOLE_HELP)
            elif command == "save":
                region = session.save_loop(rest.strip() or None)
                print(f"Saved loop {region}")
            elif command == "list":
                print_loops(session)
            elif command == "seek":
                target = parse_time(rest)
                if target is None:
                    print(f"Not a time: {rest!r}")
                else:
                    session.seek(target)
            elif command == "delete":
                index = int(rest) - 1
                if 0 <= index < len(session.regions):
                    session.delete_region(session.regions[index].id)
                else:
                    print(f"No loop #{rest}")
            elif command in ("", "status"):
                pass
            else:
                print(f"Unknown command: {command}")
        except (TikrError, ValueError) as e:
            print(f"Error: {e}")

        looping = "on" if session.looping_enabled else "off"
        print(f"[{session.state.name.lower()}] {format_position(session.position, session.duration)}"
              f"  loop: {looping}  marks: {session.pending_start} -> {session.pending_end}")


def cmd_play(args, registry, logger) -> int:
    track = registry.get_track(args.track_id)
    if track is None:
        logger.error(f"Track not found: {args.track_id}")
        return 1

    ffmpeg_path = args.ffmpeg or find_ffmpeg()
    logger.info(f"Using ffmpeg: {ffmpeg_path}")

    def transport_factory(**kwargs):
        return MediaTransport(resource_factory=lambda: PygameMediaResource(ffmpeg_path), **kwargs)

    session = LoopSession(
        registry,
        transport_factory=transport_factory,
        volume=get_volume_preference(config.DEFAULT_VOLUME),
    )
    session.on('error', lambda e: print(f"Error: {e}"))
    session.on('ended', lambda: print("End of track"))

    session.select_track(track)
    session.wait_for_regions()
    print(f"Now playing: {track.original_name}")
    print_loops(session)

    try:
        run_console(session)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        set_volume_preference(session.volume)
        session.close()
    return 0


# =============================================================================
# MAIN
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tikr", description="Audio player with named loops")
    parser.add_argument("--data-dir", default=config.DATA_DIR)
    parser.add_argument("--debug", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.WEB_HOST)
    serve.add_argument("--port", type=int, default=config.WEB_PORT)
    serve.set_defaults(func=cmd_serve)

    add = sub.add_parser("add", help="Add an audio file to the library")
    add.add_argument("file")
    add.set_defaults(func=cmd_add)

    lst = sub.add_parser("list", help="List tracks")
    lst.set_defaults(func=cmd_list)

    play = sub.add_parser("play", help="Play a track in the console")
    play.add_argument("track_id")
    play.add_argument("--ffmpeg", default=None)
    play.set_defaults(func=cmd_play)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.info("tikr starting")

    try:
        registry = LoopRegistry(args.data_dir)
        return args.func(args, registry, logger)
    except TikrError as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
