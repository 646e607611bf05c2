"""DuckDB queries over recorded match artifacts.

DuckDB reads the Parquet artifacts in place. ``union_by_name`` lines up
columns by name across files, so artifacts from older revisions that lack
trailing columns read those columns as NULL.
"""

from __future__ import annotations

from pathlib import Path

import duckdb
import pandas as pd

from matchlog.constants import ARTIFACT_SUFFIX, EVENT_KIND_CODES, EventKind

__all__ = ["MatchLogQuery"]

_KIND_CASE = "CASE event_type " + " ".join(
    f"WHEN {code} THEN '{kind.value}'" for kind, code in EVENT_KIND_CODES.items()
) + " ELSE 'unknown' END"


class MatchLogQuery:
    """
    Query the artifact tree under a data root.

    Parameters
    ----------
    data_root : str | Path
        Root directory holding ``<map_slug>/<start>.parquet`` artifacts
    con : duckdb.DuckDBPyConnection | None, optional
        Existing connection; an in-memory one is created when omitted

    Examples
    --------
    >>> q = MatchLogQuery("plugins/matchlog/data")
    >>> q.event_counts()
         map_slug    event_kind  n_events
    0  airship  position       1204
    ...
    >>> q.events(map_slug="airship", filters="event_type = 3")
    """

    def __init__(
        self,
        data_root: str | Path,
        con: duckdb.DuckDBPyConnection | None = None,
    ):
        self.data_root = Path(data_root)
        self.con = con if con is not None else duckdb.connect()

    def artifacts(self, map_slug: str | None = None) -> list[Path]:
        """
        Finalized artifact files, sorted by map and start time.

        Files still being recorded have no Parquet footer yet and are left out.
        """
        pattern = f"{map_slug or '*'}/*{ARTIFACT_SUFFIX}"
        return sorted(p for p in self.data_root.glob(pattern) if _is_finalized(p))

    def _source(self, map_slug: str | None) -> str | None:
        files = self.artifacts(map_slug)
        if not files:
            return None
        file_list = ", ".join(f"'{p.as_posix()}'" for p in files)
        return (
            f"read_parquet([{file_list}], union_by_name = true, "
            "filename = true, file_row_number = true)"
        )

    def events(
        self,
        map_slug: str | None = None,
        columns: str = "*",
        filters: str | None = None,
    ) -> pd.DataFrame:
        """
        Rows of all matching artifacts as a DataFrame.

        Adds ``event_kind`` (kind name), ``map_slug``, ``filename`` and
        ``file_row_number`` columns. Rows keep their written order within
        each artifact.

        Parameters
        ----------
        map_slug : str | None, optional
            Restrict to one map directory
        columns : str, optional
            Column selection (SQL SELECT clause), by default "*"
        filters : str | None, optional
            SQL WHERE clause (without WHERE keyword), by default None
        """
        source = self._source(map_slug)
        if source is None:
            return pd.DataFrame()

        query = f"""
        SELECT {columns}
        FROM (
            SELECT *,
                   {_KIND_CASE} AS event_kind,
                   regexp_extract(replace(filename, '\\', '/'), '([^/]+)/[^/]+$', 1) AS map_slug
            FROM {source}
        )
        """
        if filters:
            query += f" WHERE {filters}"
        query += " ORDER BY filename, file_row_number"
        return self.con.execute(query).df()

    def event_counts(self, map_slug: str | None = None) -> pd.DataFrame:
        """Number of events per map and kind."""
        df = self.events(map_slug, columns="map_slug, event_kind")
        if df.empty:
            return pd.DataFrame(columns=["map_slug", "event_kind", "n_events"])
        return (
            df.groupby(["map_slug", "event_kind"])
            .size()
            .reset_index(name="n_events")
            .sort_values(["map_slug", "event_kind"], ignore_index=True)
        )

    def subject_positions(
        self, subject_id: int, map_slug: str | None = None
    ) -> pd.DataFrame:
        """Position samples of one subject, in time order per artifact."""
        return self.events(
            map_slug,
            columns="filename, timestamp, x, y, z, held_item, inventory_count",
            filters=(
                f"event_type = {EventKind.POSITION.code} "
                f"AND player_id = {int(subject_id)}"
            ),
        )


def _is_finalized(path: Path) -> bool:
    # A closed Parquet file ends with footer length + "PAR1"; an open one
    # only has the leading magic
    try:
        if path.stat().st_size < 12:
            return False
        with path.open("rb") as f:
            f.seek(-4, 2)
            return f.read(4) == b"PAR1"
    except OSError:
        return False
