import io

from lightloop import app
from lightloop.services.errors import ModeRunError

from fakes import FakeConsole


class LoopController:
    """Scripted controller: each tick pops the next result or raises it."""

    def __init__(self, results):
        self.results = list(results)
        self.running = True
        self.console = FakeConsole()
        self.ticks = 0

    def tick(self):
        self.ticks += 1
        result = self.results.pop(0)
        if not self.results:
            self.running = False
        if isinstance(result, Exception):
            raise result
        return result


def failure():
    return ModeRunError("rainbow", RuntimeError("cloud unavailable"))


def test_run_loop_sleeps_what_the_tick_returns():
    slept = []
    controller = LoopController([0.5, 0.25, 1.0])
    assert app.run_loop(controller, sleep=slept.append) == app.EXIT_OK
    assert slept == [0.5, 0.25]
    assert controller.ticks == 3


def test_run_loop_gives_up_after_consecutive_failures():
    controller = LoopController([failure() for _ in range(6)] + [0.1])
    code = app.run_loop(controller, sleep=lambda s: None, max_failures=5)
    assert code == app.EXIT_TICK
    assert controller.ticks == 5
    assert len(controller.console.errors()) == 5


def test_run_loop_resets_failure_count_on_success():
    results = [failure(), failure(), 0.1, failure(), failure(), 0.1]
    controller = LoopController(results)
    assert app.run_loop(controller, sleep=lambda s: None, max_failures=3) == app.EXIT_OK
    assert controller.ticks == 6


def test_parse_args_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv(app.API_KEY_ENV, "env-key")
    monkeypatch.setenv(app.DEBUG_ENV, "1")
    args = app.parse_args([])
    assert args.api_key == "env-key"
    assert args.debug is True


def test_parse_args_prefers_command_line(monkeypatch):
    monkeypatch.setenv(app.API_KEY_ENV, "env-key")
    monkeypatch.delenv(app.DEBUG_ENV, raising=False)
    args = app.parse_args(["cli-key"])
    assert args.api_key == "cli-key"
    assert args.debug is False


def test_main_rejects_malformed_cached_session(monkeypatch):
    monkeypatch.setenv(app.SESSION_ENV, "{not json")
    assert app.main([]) == app.EXIT_SESSION


def test_main_login_without_key_fails(monkeypatch):
    monkeypatch.delenv(app.SESSION_ENV, raising=False)
    monkeypatch.delenv(app.API_KEY_ENV, raising=False)
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    assert app.main([]) == app.EXIT_LOGIN
