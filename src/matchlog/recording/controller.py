"""Session lifecycle controller: the call surface for host adapters.

The host adapter subscribes to the game server's events and translates them
into calls on one :class:`SessionController`, constructed at process start::

    controller = SessionController(config.data_root, Allowlist.from_file(path))
    controller.on_match_start("Airship Battle")
    controller.log_spawn(player.uuid, 10, 64, 10)
    controller.sample_all(snapshots_of_participants())
    controller.on_match_end()

States are Idle (no session) and Recording (one live session). Every entry
point is best effort: failures are logged and the piece of telemetry is
lost, nothing is raised into the host.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from loguru import logger

from matchlog.constants import (
    DEFAULT_ROW_GROUP_SIZE,
    DEFAULT_SAMPLE_INTERVAL,
    FEATURE_ALIASES,
    Feature,
)
from matchlog.errors import ConfigurationError, InvalidEventConstruction, MatchLogError
from matchlog.identity import (
    Allowlist,
    DurableId,
    IdentityResolver,
    write_default_allowlist,
)
from matchlog.models.schemas import FeatureToggles, MatchLogConfig
from matchlog.recording.sampler import PeriodicSampler
from matchlog.recording.session import RecordingSession, SubjectSnapshot
from matchlog.utils.filename import build_artifact_path
from matchlog.utils.time import utc_now

__all__ = ["ControllerStatus", "SessionController"]

T = TypeVar("T")


@dataclass(frozen=True)
class ControllerStatus:
    """Snapshot of controller state for status displays."""

    recording: bool
    artifact: Path | None
    features: dict[str, bool] = field(default_factory=dict)
    permitted_subjects: int = 0


class SessionController:
    """
    Starts and stops recording sessions and routes logging calls into them.

    Parameters
    ----------
    data_root : str | Path
        Root directory for artifacts
    allowlist : Allowlist
        Process-wide consent allowlist
    toggles : FeatureToggles | None, optional
        Feature switches, all on by default
    sample_interval : float, optional
        Seconds between sampling ticks, by default 5.0
    subject_source : Callable[[], Iterable[SubjectSnapshot]] | None, optional
        Returns the active participants. When given, a background sampler
        calls :meth:`sample_all` with it every ``sample_interval`` while
        recording; otherwise an external scheduler calls :meth:`sample_all`.
    row_group_size : int, optional
        Rows buffered per Parquet row group
    clock : Callable[[], float], optional
        Monotonic clock used for event timestamps
    now : Callable[[], datetime], optional
        Wall clock used for artifact file names
    """

    def __init__(
        self,
        data_root: str | Path,
        allowlist: Allowlist,
        toggles: FeatureToggles | None = None,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL,
        subject_source: Callable[[], Iterable[SubjectSnapshot]] | None = None,
        row_group_size: int = DEFAULT_ROW_GROUP_SIZE,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = utc_now,
    ):
        self.data_root = Path(data_root)
        self.allowlist = allowlist
        self.toggles = toggles if toggles is not None else FeatureToggles()
        self.sample_interval = sample_interval
        self.subject_source = subject_source
        self.row_group_size = row_group_size
        self._clock = clock
        self._now = now
        self._session: RecordingSession | None = None
        self._sampler: PeriodicSampler | None = None
        self._state_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: MatchLogConfig,
        subject_source: Callable[[], Iterable[SubjectSnapshot]] | None = None,
    ) -> SessionController:
        """
        Build a controller from validated settings.

        A missing allowlist file is replaced by the commented template. A
        malformed one is logged and leaves everyone anonymous.
        """
        if write_default_allowlist(config.allowlist_path):
            logger.info(f"Created default allowlist at {config.allowlist_path}")
        allowlist = Allowlist(path=config.allowlist_path)
        try:
            allowlist.reload()
        except ConfigurationError as e:
            logger.error(f"Allowlist not loaded, all subjects will be anonymous: {e}")

        return cls(
            config.data_root,
            allowlist,
            toggles=config.features.model_copy(),
            sample_interval=config.sample_interval,
            subject_source=subject_source,
            row_group_size=config.row_group_size,
        )

    @property
    def session(self) -> RecordingSession | None:
        """The live session, if recording."""
        return self._session

    @property
    def recording(self) -> bool:
        return self._session is not None

    # ------------------------------------------------------------------
    # Match lifecycle
    # ------------------------------------------------------------------

    def on_match_start(self, map_name: str | None) -> Path | None:
        """
        Open a session for a new match (Idle -> Recording).

        A session still open from a previous match is closed first.

        Returns
        -------
        Path | None
            Artifact path, or None if the artifact could not be created (the
            controller stays Idle for the whole match)
        """
        with self._state_lock:
            if self._session is not None:
                logger.warning(
                    f"Match started while still recording {self._session.path}; "
                    "closing previous session"
                )
                self._stop_recording()

            logger.info(f"Match started: {map_name}")
            try:
                path = build_artifact_path(self.data_root, map_name, self._now())
                session = RecordingSession.open(
                    path,
                    IdentityResolver(self.allowlist),
                    map_name=map_name,
                    row_group_size=self.row_group_size,
                    clock=self._clock,
                )
            except (MatchLogError, OSError) as e:
                logger.error(f"Failed to create match artifact: {e}")
                return None

            self._session = session
            self._start_sampling()
            return session.path

    def on_match_end(self) -> Path | None:
        """
        Stop sampling and close the session (Recording -> Idle).

        Returns
        -------
        Path | None
            Path of the closed artifact, or None if nothing was recording
        """
        with self._state_lock:
            if self._session is None:
                logger.debug("Match ended with no active session")
                return None
            logger.info("Match ended.")
            return self._stop_recording()

    def shutdown(self) -> None:
        """Stop sampling and close any live session (process shutdown)."""
        self.on_match_end()

    # ------------------------------------------------------------------
    # Logging calls
    # ------------------------------------------------------------------

    def log_spawn(self, subject: DurableId, x: float, y: float, z: float) -> None:
        self._route(
            Feature.SPAWNS, "spawn", lambda s: s.log_spawn(subject, x, y, z)
        )

    def log_death(
        self,
        subject: DurableId,
        x: float,
        y: float,
        z: float,
        killer: DurableId | None = None,
    ) -> None:
        self._route(
            Feature.DEATHS, "death", lambda s: s.log_death(subject, x, y, z, killer)
        )

    def log_wool_touch(
        self, subject: DurableId, x: float, y: float, z: float, color: str | None
    ) -> None:
        self._route(
            Feature.WOOL,
            "wool touch",
            lambda s: s.log_wool_touch(subject, x, y, z, color),
        )

    def log_wool_capture(
        self, subject: DurableId, x: float, y: float, z: float, color: str | None
    ) -> None:
        self._route(
            Feature.WOOL,
            "wool capture",
            lambda s: s.log_wool_capture(subject, x, y, z, color),
        )

    def sample_all(self, active_subjects: Iterable[SubjectSnapshot]) -> int:
        """Sample the given participants; returns rows written."""
        written = self._route(
            Feature.POSITIONS, "position sample", lambda s: s.sample(active_subjects)
        )
        return written or 0

    # ------------------------------------------------------------------
    # Feature toggles and status
    # ------------------------------------------------------------------

    def toggle(self, feature: str) -> bool:
        """
        Flip a feature by console name.

        ``all`` turns every feature on, or off if every feature is already on.

        Returns
        -------
        bool
            New state of the feature

        Raises
        ------
        ValueError
            If ``feature`` is not a known name
        """
        name = feature.strip().lower()
        if name == "all":
            new_state = not self.toggles.all_enabled()
            for each in Feature:
                self.toggles.set(each, new_state)
            logger.info(f"All logging: {'ON' if new_state else 'OFF'}")
            return new_state

        resolved = FEATURE_ALIASES.get(name)
        if resolved is None:
            msg = f"Unknown feature: {feature}"
            raise ValueError(msg)
        new_state = not self.toggles.is_enabled(resolved)
        self.toggles.set(resolved, new_state)
        logger.info(f"{resolved.value.capitalize()} logging: {'ON' if new_state else 'OFF'}")
        return new_state

    def set_feature(self, feature: Feature, enabled: bool) -> None:
        self.toggles.set(feature, enabled)

    def status(self) -> ControllerStatus:
        session = self._session
        return ControllerStatus(
            recording=session is not None,
            artifact=session.path if session is not None else None,
            features={f.value: self.toggles.is_enabled(f) for f in Feature},
            permitted_subjects=len(self.allowlist),
        )

    def reload_allowlist(self) -> bool:
        """Reload the allowlist from its file; False (and logged) on failure."""
        try:
            self.allowlist.reload()
        except ConfigurationError as e:
            logger.error(f"Allowlist reload failed, keeping previous entries: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _route(
        self, feature: Feature, what: str, call: Callable[[RecordingSession], T]
    ) -> T | None:
        # Disabled features return before identity resolution, so no
        # anonymous ID is handed out for a dropped call.
        if not self.toggles.is_enabled(feature):
            return None
        session = self._session
        if session is None:
            return None
        try:
            return call(session)
        except InvalidEventConstruction:
            logger.exception(f"Dropped {what}: invalid event from caller")
        except (MatchLogError, OSError, OverflowError, TypeError, ValueError) as e:
            logger.warning(f"Dropped {what}: {e}")
        return None

    def _start_sampling(self) -> None:
        if self.subject_source is None:
            return
        source = self.subject_source
        self._sampler = PeriodicSampler(
            self.sample_interval, lambda: self.sample_all(source())
        )
        self._sampler.start()
        logger.info(f"Started position tracking (every {self.sample_interval:g} seconds)")

    def _stop_recording(self) -> Path | None:
        # state lock held
        if self._sampler is not None:
            self._sampler.stop()
            self._sampler = None

        session, self._session = self._session, None
        if session is None:
            return None
        session.close()
        logger.info(f"Data saved to: {session.file_name}")
        return session.path
