import os

import pytest

from print_agent.core.config import Settings
from print_agent.core.errors import StartupError
from print_agent.runtime import instance
from print_agent.runtime.instance import InstanceLock, take_over_instance
from print_agent.runtime.reaper import ProcessReaper


class RecordingReaper(ProcessReaper):
    def __init__(self, on_terminate=None):
        self.reclaimed = []
        self.terminated = []
        self.on_terminate = on_terminate

    def owners(self, ports):
        return set()

    def reclaim(self, ports):
        self.reclaimed.append(tuple(ports))
        return []

    def terminate(self, pids):
        self.terminated.extend(pids)
        if self.on_terminate:
            self.on_terminate()
        return list(pids)


def _settings(tmp_path):
    return Settings(lock_path=str(tmp_path / "agent.lock"), shutdown_delay=0)


def test_acquire_writes_pid_and_release_removes(tmp_path):
    lock = InstanceLock(str(tmp_path / "state" / "agent.lock"))
    assert lock.acquire() is True
    assert lock.holder() == os.getpid()
    lock.release()
    assert not lock.path.exists()


def test_live_holder_blocks_acquire(tmp_path, monkeypatch):
    path = tmp_path / "agent.lock"
    path.write_text("99999")
    monkeypatch.setattr(instance.psutil, "pid_exists", lambda pid: True)
    lock = InstanceLock(str(path))
    assert lock.acquire() is False
    assert lock.holder() == 99999


def test_stale_lock_is_replaced(tmp_path, monkeypatch):
    path = tmp_path / "agent.lock"
    path.write_text("99999")
    monkeypatch.setattr(instance.psutil, "pid_exists", lambda pid: False)
    lock = InstanceLock(str(path))
    assert lock.acquire() is True
    assert lock.holder() == os.getpid()


def test_garbage_lock_file_is_replaced(tmp_path):
    path = tmp_path / "agent.lock"
    path.write_text("not a pid")
    lock = InstanceLock(str(path))
    assert lock.acquire() is True


def test_release_leaves_foreign_lock_alone(tmp_path):
    path = tmp_path / "agent.lock"
    lock = InstanceLock(str(path))
    assert lock.acquire()
    path.write_text("12345")
    lock.release()
    assert path.exists()


def test_takeover_without_incumbent(tmp_path):
    settings = _settings(tmp_path)
    lock = InstanceLock(settings.lock_path)
    calls = []
    take_over_instance(lock, settings, RecordingReaper(), shutdown=lambda url, t: calls.append(url) or True)
    assert lock.acquired
    assert calls == []


def test_takeover_graceful(tmp_path, monkeypatch):
    settings = _settings(tmp_path)
    path = tmp_path / "agent.lock"
    path.write_text("4242")
    alive = {"4242": True}
    monkeypatch.setattr(instance.psutil, "pid_exists", lambda pid: alive["4242"])

    def _shutdown(url, timeout):
        assert url == settings.shutdown_url
        alive["4242"] = False
        return True

    monkeypatch.setattr(instance, "wait_for_exit", lambda pid, timeout: not alive["4242"])
    reaper = RecordingReaper()
    lock = InstanceLock(settings.lock_path)
    take_over_instance(lock, settings, reaper, shutdown=_shutdown, sleep=lambda s: None)

    assert lock.holder() == os.getpid()
    assert reaper.reclaimed == []
    assert reaper.terminated == []


def test_takeover_forces_unresponsive_incumbent(tmp_path, monkeypatch):
    settings = _settings(tmp_path)
    path = tmp_path / "agent.lock"
    path.write_text("4242")
    alive = {"4242": True}
    monkeypatch.setattr(instance.psutil, "pid_exists", lambda pid: alive["4242"])

    def _killed():
        alive["4242"] = False

    reaper = RecordingReaper(on_terminate=_killed)
    lock = InstanceLock(settings.lock_path)
    take_over_instance(lock, settings, reaper, shutdown=lambda url, t: False, sleep=lambda s: None)

    assert reaper.reclaimed == [settings.ports]
    assert reaper.terminated == [4242]
    assert lock.holder() == os.getpid()


def test_takeover_fails_when_incumbent_survives(tmp_path, monkeypatch):
    settings = _settings(tmp_path)
    path = tmp_path / "agent.lock"
    path.write_text("4242")
    monkeypatch.setattr(instance.psutil, "pid_exists", lambda pid: True)

    lock = InstanceLock(settings.lock_path)
    with pytest.raises(StartupError):
        take_over_instance(lock, settings, RecordingReaper(), shutdown=lambda url, t: False, sleep=lambda s: None)
