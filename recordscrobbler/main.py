import argparse
import json
import logging
import os
import sys

from recordscrobbler.artist_mappings import ArtistMappingStore
from recordscrobbler.backend_client import BackendClient
from recordscrobbler.errors import ScrobblerError
from recordscrobbler.lastfm_client import LastFMClient, LastFMScrobbleBackend
from recordscrobbler.notifier import from_env as webhook_notifier_from_env
from recordscrobbler.orchestrator import ScrobbleOrchestrator, State
from recordscrobbler.release_view import ReleaseView
from recordscrobbler.selection import TrackSelection
from recordscrobbler.timing import format_local_time, parse_start_time
from recordscrobbler.tracklist import Release

# -------------------------
# Configuration via ENV VARS
# -------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

BACKEND_URL = os.getenv("BACKEND_URL", "").strip()
BACKEND_TIMEOUT = float(os.getenv("BACKEND_TIMEOUT", "30"))

LASTFM_API_KEY = os.getenv("LASTFM_API_KEY")
LASTFM_API_SECRET = os.getenv("LASTFM_API_SECRET")
LASTFM_SESSION_KEY = os.getenv("LASTFM_SESSION_KEY")
LASTFM_USERNAME = os.getenv("LASTFM_USERNAME")
LASTFM_PASSWORD_MD5 = os.getenv("LASTFM_PASSWORD_MD5")

ARTIST_MAPPINGS_PATH = os.getenv("ARTIST_MAPPINGS_PATH", "/data/artist_mappings.json")

POLL_INTERVAL = max(0.0, float(os.getenv("POLL_INTERVAL", "1")))
POLL_INITIAL_DELAY = max(0.0, float(os.getenv("POLL_INITIAL_DELAY", "0.5")))

log = logging.getLogger("record-scrobbler")


class ReleaseFileCatalog:
    """Releases from local JSON files (Discogs release shape)."""

    def fetch_release(self, path: str) -> Release:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        return Release.from_dict(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recordscrobbler",
        description="Scrobble tracks from a record in your collection to Last.fm",
    )
    parser.add_argument("release", help="Release id (with BACKEND_URL) or path to a release JSON file")
    parser.add_argument("--tracks", nargs="+", metavar="POS", help="Track positions to scrobble, e.g. A1 A2 B3")
    parser.add_argument("--side", nargs="+", metavar="SIDE", help="Whole sides to scrobble, e.g. A B")
    parser.add_argument("--disc", nargs="+", type=int, metavar="N", help="Whole discs to scrobble, e.g. 1 2")
    parser.add_argument("--start", help='Start time "YYYY-MM-DD HH:MM" (local); default: tracks end now')
    parser.add_argument("--nudge", type=int, default=0, metavar="MINUTES",
                        help="Shift the start time by this many minutes")
    parser.add_argument("--yes", action="store_true", help="Don't ask about unmapped disambiguated artists")
    parser.add_argument("--dry-run", action="store_true", help="Show the timestamped batch and stop")
    return parser


def build_view() -> ReleaseView:
    def on_change(orch: ScrobbleOrchestrator):
        if orch.state == State.POLLING and orch.progress is not None:
            p = orch.progress
            log.info("Scrobbling %s/%s (success=%s failed=%s ignored=%s)",
                     p.current, p.total, p.success, p.failed, p.ignored)

    if BACKEND_URL:
        client = BackendClient(BACKEND_URL, timeout=BACKEND_TIMEOUT)
        return ReleaseView(client, client, client.lookup_artist_mapping,
                           poll_interval=POLL_INTERVAL, initial_delay=POLL_INITIAL_DELAY, on_change=on_change)

    # Validate Last.fm configuration up-front for clear errors
    if not LASTFM_API_KEY or not LASTFM_API_SECRET:
        raise SystemExit("Set BACKEND_URL, or LASTFM_API_KEY and LASTFM_API_SECRET")
    if not (LASTFM_SESSION_KEY or (LASTFM_USERNAME and LASTFM_PASSWORD_MD5)):
        raise SystemExit("Provide LASTFM_SESSION_KEY or LASTFM_USERNAME + LASTFM_PASSWORD_MD5")

    mappings = ArtistMappingStore(ARTIST_MAPPINGS_PATH)
    lfm = LastFMClient(
        api_key=LASTFM_API_KEY,
        api_secret=LASTFM_API_SECRET,
        session_key=LASTFM_SESSION_KEY,
        username=LASTFM_USERNAME,
        password_md5=LASTFM_PASSWORD_MD5,
    )
    backend = LastFMScrobbleBackend(lfm, mappings)
    return ReleaseView(ReleaseFileCatalog(), backend, backend.lookup_artist_mapping,
                       poll_interval=POLL_INTERVAL, initial_delay=POLL_INITIAL_DELAY, on_change=on_change)


def apply_selection(view: ReleaseView, args) -> None:
    if not (args.tracks or args.side or args.disc):
        return
    selection = view.selection = TrackSelection(view.release, selected=[])

    for side in args.side or []:
        if side.upper() not in view.topology.sides:
            raise SystemExit(f"Release has no side {side}")
        selection.toggle_side(side.upper())
    for n in args.disc or []:
        sides = view.topology.discs.get(f"Disc {n}")
        if not sides:
            raise SystemExit(f"Release has no disc {n}")
        selection.toggle_disc(sides)

    positions = {t.position.strip(): i for i, t in enumerate(view.release.tracklist) if not t.is_header}
    for pos in args.tracks or []:
        if pos not in positions:
            raise SystemExit(f"Release has no track at position {pos}")
        if positions[pos] not in selection:
            selection.toggle_track(positions[pos])


def print_release(view: ReleaseView) -> None:
    release = view.release
    print(f"{release.artist} - {release.title}")
    for row in view.track_rows():
        if row.is_header:
            print(f"   {row.title}")
            continue
        mark = "x" if row.selected else " "
        plays = ""
        if row.play_count:
            plays = f"  [{row.play_count} {'play' if row.play_count == 1 else 'plays'}, {row.last_played_text}]"
        print(f"[{mark}] {row.position:>4} {row.title} {row.duration or ''}{plays}")
    print(view.timing_description())


def main(argv=None) -> int:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,  # ensure our config is used even if libs pre-configure logging
    )
    args = build_parser().parse_args(argv)
    notifier = webhook_notifier_from_env()  # ok if NOTIFY_WEBHOOK_URL is empty
    view = build_view()

    try:
        view.load(args.release)
    except (ScrobblerError, OSError, ValueError) as e:
        raise SystemExit(f"Failed to load release {args.release}: {e}")

    apply_selection(view, args)
    if args.start:
        try:
            view.set_start_time(parse_start_time(args.start))
        except ValueError as e:
            raise SystemExit(str(e))
    if args.nudge:
        if view.plan.is_auto:
            view.auto_timing()
        view.nudge_start_time(args.nudge)

    print_release(view)
    if not view.selection:
        print("No tracks selected.")
        return 1

    if args.dry_run:
        for entry in view.build_batch():
            print(f"{format_local_time(entry.timestamp)}  {entry.artist} - {entry.track} ({entry.duration}s)")
        return 0

    result = view.request_scrobble()
    if view.guard.awaiting_confirmation:
        print("These artists have Discogs disambiguation suffixes and no Last.fm mapping:")
        for artist in view.guard.pending_artists:
            print(f"  {artist}")
        answer = "y" if args.yes else input("Scrobble anyway? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            view.cancel_disambiguation()
            print("Cancelled. Create an artist mapping first.")
            return 1
        result = view.confirm_disambiguation()

    orch = view.orchestrator
    notifier.session_finished(view.release.title, result, orch.error)
    view.close()

    if result is None:
        print(f"Scrobble failed: {orch.error}")
        return 1
    print(f"Scrobbled {result.success} tracks (failed: {result.failed}, ignored: {result.ignored})")
    for err in result.errors:
        print(f"  {err}")
    return 0 if orch.state == State.COMPLETED else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        log.info("Shutting down…")
