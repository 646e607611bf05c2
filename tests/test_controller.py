"""Tests for the session lifecycle controller."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest

from conftest import U1, U2, UX, UY
from matchlog.constants import EventKind, Feature
from matchlog.identity import DEFAULT_ALLOWLIST, Allowlist
from matchlog.io.parquet import read_events
from matchlog.models.event import MatchEvent
from matchlog.models.schemas import FeatureToggles, MatchLogConfig
from matchlog.recording.controller import SessionController
from matchlog.recording.session import SubjectSnapshot

START = datetime(2024, 5, 1, 20, 15, 3, tzinfo=timezone.utc)


@pytest.fixture
def controller(tmp_path, allowlist, clock):
    """Controller with a fake clock and a fixed wall time."""
    controller = SessionController(
        tmp_path / "data", allowlist, clock=clock, now=lambda: START
    )
    yield controller
    controller.shutdown()


def _kinds(path):
    return [e.kind for e in read_events(path)]


class TestLifecycle:
    """Test Idle/Recording transitions."""

    def test_starts_idle(self, controller) -> None:
        assert not controller.recording
        assert controller.session is None

    def test_match_start_creates_artifact(self, controller, tmp_path) -> None:
        """Test the artifact lands under the map's slug, named by start time."""
        path = controller.on_match_start("Airship Battle")
        assert path == tmp_path / "data" / "airship_battle" / "2024-05-01_20-15-03.parquet"
        assert controller.recording
        assert controller.session.path == path

    def test_full_match(self, controller, clock) -> None:
        """Test a match produces start, logged events and end in order."""
        controller.on_match_start("Airship Battle")
        clock.advance(3)
        controller.log_spawn(U1, 10, 64, 10)
        clock.advance(4)
        controller.log_death(UX, 1, 2, 3, killer=UY)
        clock.advance(2)
        controller.log_wool_touch(U1, 5, 70, 5, "RED")
        controller.log_wool_capture(U1, 6, 70, 6, "RED")
        path = controller.on_match_end()

        assert not controller.recording
        assert read_events(path) == [
            MatchEvent.match_start("Airship Battle"),
            MatchEvent.spawn(3, 0, 10, 64, 10),
            MatchEvent.death(7, 7, 1, 2, 3, killer_id=1),
            MatchEvent.wool_touch(9, 0, 5, 70, 5, objective_id=14),
            MatchEvent.wool_capture(9, 0, 6, 70, 6, objective_id=14),
            MatchEvent.match_end(9),
        ]

    def test_match_end_when_idle(self, controller) -> None:
        assert controller.on_match_end() is None

    def test_calls_while_idle_ignored(self, controller, tmp_path) -> None:
        """Test logging calls with no session do nothing and do not raise."""
        controller.log_spawn(U1, 1, 2, 3)
        controller.log_death(U1, 1, 2, 3)
        assert controller.sample_all([SubjectSnapshot(U1, 1, 2, 3)]) == 0
        assert not (tmp_path / "data").exists()

    def test_restart_force_closes_previous(self, controller, clock) -> None:
        """Test a start while recording closes the previous session first."""
        first = controller.on_match_start("Airship")
        controller.log_spawn(U1, 1, 2, 3)
        clock.advance(30)
        second = controller.on_match_start("Airship")

        assert first != second
        assert second.name == "2024-05-01_20-15-03_1.parquet"
        assert _kinds(first) == [
            EventKind.MATCH_START,
            EventKind.SPAWN,
            EventKind.MATCH_END,
        ]

        # Fresh identity scope in the new session
        controller.log_spawn(U2, 1, 2, 3)
        controller.on_match_end()
        events = read_events(second)
        assert events[1] == MatchEvent.spawn(0, 0, 1, 2, 3)
        assert events[-1].kind is EventKind.MATCH_END

    def test_failed_open_stays_idle(self, tmp_path, allowlist, clock, log_messages) -> None:
        """Test an uncreatable artifact leaves the controller Idle for the match."""
        blocker = tmp_path / "data"
        blocker.write_text("not a directory")
        controller = SessionController(blocker, allowlist, clock=clock, now=lambda: START)

        assert controller.on_match_start("Airship") is None
        assert not controller.recording
        controller.log_spawn(U1, 1, 2, 3)
        assert controller.on_match_end() is None
        assert any("Failed to create match artifact" in m for m in log_messages)

    def test_shutdown_closes_session(self, controller) -> None:
        path = controller.on_match_start("Airship")
        controller.shutdown()
        assert not controller.recording
        assert _kinds(path)[-1] is EventKind.MATCH_END


class TestToggles:
    """Test feature toggles."""

    def test_disabled_wool_writes_nothing(self, controller) -> None:
        """Test a disabled feature neither writes nor assigns anonymous IDs."""
        path = controller.on_match_start("Airship")
        controller.set_feature(Feature.WOOL, False)
        controller.log_wool_touch(U1, 5, 70, 5, "RED")
        controller.log_wool_capture(U1, 5, 70, 5, "RED")
        assert controller.session.resolver.anonymous_count == 0

        controller.log_spawn(U2, 1, 2, 3)
        controller.on_match_end()
        events = read_events(path)
        assert [e.kind for e in events] == [
            EventKind.MATCH_START,
            EventKind.SPAWN,
            EventKind.MATCH_END,
        ]
        assert events[1].subject_id == 0

    def test_disabled_positions(self, controller) -> None:
        controller.on_match_start("Airship")
        controller.toggle("positions")
        assert controller.sample_all([SubjectSnapshot(U1, 1, 2, 3)]) == 0
        controller.toggle("pos")
        assert controller.sample_all([SubjectSnapshot(U1, 1, 2, 3)]) == 1

    def test_toggle_flips(self, controller) -> None:
        assert controller.toggle("deaths") is False
        assert not controller.toggles.deaths
        assert controller.toggle("DEATH") is True
        assert controller.toggles.deaths

    def test_toggle_all(self, controller) -> None:
        """Test 'all' turns everything off when all are on, else on."""
        assert controller.toggle("all") is False
        assert not any(controller.status().features.values())
        controller.toggle("spawns")
        assert controller.toggle("all") is True
        assert controller.toggles.all_enabled()

    def test_toggle_unknown(self, controller) -> None:
        with pytest.raises(ValueError, match="Unknown feature"):
            controller.toggle("chat")

    def test_toggles_survive_sessions(self, controller) -> None:
        """Test toggles are process-wide, not per session."""
        controller.toggle("wool")
        controller.on_match_start("Airship")
        controller.on_match_end()
        controller.on_match_start("Airship")
        assert not controller.toggles.wool

    def test_initial_toggles(self, tmp_path, allowlist) -> None:
        toggles = FeatureToggles(positions=False)
        controller = SessionController(tmp_path, allowlist, toggles=toggles)
        assert controller.status().features["positions"] is False
        assert controller.status().features["deaths"] is True


class TestErrorContainment:
    """Test that caller mistakes never propagate into the host."""

    def test_raw_float_coordinates_truncated(self, controller) -> None:
        """Test raw world coordinates are converted to block coordinates."""
        path = controller.on_match_start("Airship")
        controller.log_spawn(U1, 10.7, 64.0, 10.2)
        controller.log_death(U1, 11.2, 64.0, -3.9, killer=U2)
        controller.log_wool_touch(U1, 1.5, 2.5, 3.5, "RED")
        controller.log_wool_capture(U1, -1.5, 2.5, 3.5, "RED")
        controller.on_match_end()

        assert read_events(path)[1:-1] == [
            MatchEvent.spawn(0, 0, 10, 64, 10),
            MatchEvent.death(0, 0, 11, 64, -3, killer_id=1),
            MatchEvent.wool_touch(0, 0, 1, 2, 3, objective_id=14),
            MatchEvent.wool_capture(0, 0, -1, 2, 3, objective_id=14),
        ]

    def test_unconvertible_coordinates_logged(self, controller, log_messages) -> None:
        """Test NaN or infinite coordinates drop the call before resolving identity."""
        path = controller.on_match_start("Airship")
        controller.log_spawn(U1, float("nan"), 64, 10)
        controller.log_death(U1, float("inf"), 64, 10)
        assert controller.session.resolver.anonymous_count == 0
        controller.on_match_end()
        assert _kinds(path) == [EventKind.MATCH_START, EventKind.MATCH_END]
        assert any("Dropped spawn" in m for m in log_messages)
        assert any("Dropped death" in m for m in log_messages)

    def test_invalid_identifier_logged(self, controller, log_messages) -> None:
        controller.on_match_start("Airship")
        controller.log_death("Steve", 1, 2, 3)
        assert any("Dropped death" in m for m in log_messages)
        assert controller.recording


class TestStatusAndAllowlist:
    """Test status reporting and allowlist reloads."""

    def test_status(self, controller) -> None:
        status = controller.status()
        assert not status.recording
        assert status.artifact is None
        assert status.permitted_subjects == 1

        path = controller.on_match_start("Airship")
        status = controller.status()
        assert status.recording
        assert status.artifact == path

    def test_reload_allowlist(self, tmp_path, allowlist_file, clock) -> None:
        """Test a reload takes effect for subjects first seen afterwards."""
        controller = SessionController(
            tmp_path / "data", Allowlist.from_file(allowlist_file), clock=clock
        )
        allowlist_file.write_text(f"permitted:\n  {U1}: -9\n")
        assert controller.reload_allowlist()
        assert controller.status().permitted_subjects == 1

        path = controller.on_match_start("Airship")
        controller.log_spawn(U1, 1, 2, 3)
        controller.log_spawn(UX, 1, 2, 3)
        controller.on_match_end()
        spawns = [e for e in read_events(path) if e.kind is EventKind.SPAWN]
        assert [e.subject_id for e in spawns] == [-9, 0]

    def test_failed_reload_keeps_entries(self, allowlist_file, tmp_path, log_messages) -> None:
        controller = SessionController(tmp_path, Allowlist.from_file(allowlist_file))
        allowlist_file.write_text("permitted: [broken\n")
        assert controller.reload_allowlist() is False
        assert controller.allowlist.public_id(UX) == 7
        assert any("Allowlist reload failed" in m for m in log_messages)

    def test_from_config_writes_template(self, tmp_path) -> None:
        """Test a missing allowlist is created from the template."""
        config = MatchLogConfig(
            data_root=tmp_path / "data",
            allowlist_path=tmp_path / "permitted-players.yml",
            sample_interval=2.5,
        )
        controller = SessionController.from_config(config)
        assert config.allowlist_path.read_text() == DEFAULT_ALLOWLIST
        assert len(controller.allowlist) == 0
        assert controller.sample_interval == 2.5

    def test_from_config_copies_toggles(self, tmp_path, allowlist_file) -> None:
        """Test runtime toggles do not mutate the loaded config."""
        config = MatchLogConfig(data_root=tmp_path, allowlist_path=allowlist_file)
        controller = SessionController.from_config(config)
        controller.toggle("wool")
        assert config.features.wool
        assert controller.allowlist.public_id(UX) == 7


class TestBackgroundSampling:
    """Test the periodic sampler wired through the controller."""

    def test_samples_while_recording(self, tmp_path, allowlist) -> None:
        ticked = threading.Event()
        calls = []

        def source():
            calls.append(1)
            if len(calls) >= 3:
                ticked.set()
            # Move one block per tick so every sample is written
            return [SubjectSnapshot(U1, len(calls), 64, 0)]

        controller = SessionController(
            tmp_path, allowlist, sample_interval=0.01, subject_source=source
        )
        path = controller.on_match_start("Airship")
        assert ticked.wait(5)
        controller.on_match_end()
        n_calls = len(calls)

        positions = [e for e in read_events(path) if e.kind is EventKind.POSITION]
        assert len(positions) >= 3
        assert all(e.subject_id == 0 for e in positions)
        # No ticks after the match ended
        ticked.clear()
        assert not ticked.wait(0.1)
        assert len(calls) == n_calls
