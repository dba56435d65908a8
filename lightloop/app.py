import argparse
import logging
import os
import sys
import time

from dotenv import load_dotenv

load_dotenv()

from lightloop.drivers.console import Console
from lightloop.services.controller import Controller
from lightloop.services.errors import (
    CacheRefreshError,
    LightLoopError,
    LoginError,
    ModeRunError,
    SessionError,
)
from lightloop.services.govee import GoveeService, Session, login
from lightloop.services.modes import COMMAND_ID

logger = logging.getLogger("lightloop")

API_KEY_ENV = "GOVEE_API_KEY"
SESSION_ENV = "LIGHTLOOP_SESSION"
DEBUG_ENV = "LIGHTLOOP_DEBUG"

MAX_TICK_FAILURES = 5  # consecutive failed ticks before giving up

EXIT_OK = 0
EXIT_LOGIN = 2
EXIT_MODE_SWITCH = 4
EXIT_SESSION = 5
EXIT_TICK = 100


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="lightloop", description="Interactive mode loop for Govee lights")
    p.add_argument("api_key", nargs="?", default=None,
                   help=f"Govee API key (falls back to ${API_KEY_ENV}, then an interactive prompt)")
    p.add_argument("--debug", action="store_true", default=None,
                   help=f"Verbose logging (also enabled by ${DEBUG_ENV}=1)")
    args = p.parse_args(argv)
    if args.debug is None:
        args.debug = os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes")
    if not args.api_key:
        args.api_key = os.environ.get(API_KEY_ENV, "")
    return args


def configure_logging(debug):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


def connect(api_key, console):
    """Build a device client from a cached session, or log in interactively.

    Raises:
        SessionError: the cached session is malformed.
        LoginError: the interactive login failed.
    """
    cached = os.environ.get(SESSION_ENV, "")
    if cached:
        session = Session.from_json(cached)
        logger.debug("Logging in with cached session info")
        return GoveeService(session)

    logger.debug("Logging in with API key, len: %d", len(api_key or ""))
    return login(api_key, console.prompt)


def run_loop(controller, sleep=time.sleep, max_failures=MAX_TICK_FAILURES):
    """Tick until the controller stops. Returns the process exit code."""
    failures = 0
    while controller.running:
        try:
            sleep_for = controller.tick()
            failures = 0
        except ModeRunError as e:
            failures += 1
            logger.error("%s (%d/%d)", e, failures, max_failures)
            controller.console.error(e.mode_id, str(e.cause))
            if failures >= max_failures:
                return EXIT_TICK
            sleep_for = 1.0
        if not controller.running:
            break
        sleep(sleep_for)
    return EXIT_OK


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.debug)
    console = Console()

    try:
        client = connect(args.api_key, console)
    except SessionError as e:
        print(f"[main] {e}")
        return EXIT_SESSION
    except LoginError as e:
        print(f"[main] {e}")
        return EXIT_LOGIN

    controller = Controller(client, console=console, debug=args.debug)
    try:
        devices = controller.refresh_device_cache()
        logger.info("Loaded %d device(s)", len(devices))
    except CacheRefreshError as e:
        # Modes pick the devices up once a later refresh succeeds.
        logger.warning("%s", e)

    try:
        controller.switch_mode(COMMAND_ID)
    except LightLoopError as e:
        print(f"[main] {e}")
        return EXIT_MODE_SWITCH

    try:
        return run_loop(controller)
    except KeyboardInterrupt:
        return EXIT_OK
    finally:
        controller.stop()


if __name__ == "__main__":
    sys.exit(main())
