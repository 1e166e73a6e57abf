from print_agent import runner
from print_agent.core.errors import StartupError


class _FailingArbiter:
    def acquire(self):
        raise StartupError("Ports [21321, 21322] still in use after 3 attempts")


def test_parser_flags():
    args = runner.build_parser().parse_args(["--dev", "--no-takeover", "--config", "/tmp/agent.json"])
    assert args.dev is True
    assert args.no_takeover is True
    assert args.config == "/tmp/agent.json"


def test_startup_failure_exits_2_and_releases_lock(tmp_path, monkeypatch):
    lock_path = tmp_path / "agent.lock"
    monkeypatch.setenv("PRINTAGENT_LOCK_PATH", str(lock_path))
    monkeypatch.setattr(runner, "configure_logging", lambda *a, **k: None)
    monkeypatch.setattr(runner.PortArbiter, "from_settings", classmethod(lambda cls, s, reaper=None: _FailingArbiter()))

    assert runner.main(["--config", str(tmp_path / "missing.json")]) == runner.EXIT_STARTUP_FAILED
    assert not lock_path.exists()
