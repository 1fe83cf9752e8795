"""Schema creation and upgrades driven by the stored ``version`` setting."""

from __future__ import annotations

from timing_remote.core.exceptions import MigrationError, TimingRemoteError
from timing_remote.core.logging import get_logger
from timing_remote.db.base import VERSION_SETTING
from timing_remote.db.store import SQLStore

logger = get_logger(__name__)


class MigrationRunner:
    """Brings a store's database to its catalog's version.

    A fresh database (version -1 or 0) gets the full schema in a single
    transaction. An older one gets each missing upgrade step in its own
    transaction, each of which also records the version it reached, so a
    failed step leaves the previous version in place.
    """

    def __init__(self, store: SQLStore):
        self.store = store
        self.schema = store.schema

    def current_version(self) -> int:
        return self.store._read_version()

    def ensure_schema(self) -> int:
        """Create or upgrade the schema and return the resulting version."""
        target = self.schema.version
        version = self.current_version()
        logger.info(
            "Checking database schema",
            data={"backend": self.schema.name, "version": version, "target": target},
        )

        if version > target:
            raise MigrationError(
                f"Database schema version {version} is newer than supported version {target}",
                version=version,
            )
        if version == target:
            return version
        if version < 1:
            self._create(target)
            return target

        while version < target:
            step = self.schema.step_from(version)
            if step is None:
                raise MigrationError(f"No upgrade path from version {version}", version=version)
            self._apply(step.from_version, step.to_version, step.description, step.statements)
            version = step.to_version
        return version

    def _create(self, target: int) -> None:
        logger.info("Creating database tables", data={"backend": self.schema.name})
        self._run("create schema", self.schema.create, target)

    def _apply(self, from_version: int, to_version: int, description: str, statements) -> None:
        logger.info(
            "Upgrading database schema",
            data={"from": from_version, "to": to_version, "step": description},
        )
        self._run(description, statements, to_version)

    def _run(self, description: str, statements, to_version: int) -> None:
        try:
            with self.store._transaction("migrate") as conn:
                for index, statement in enumerate(statements):
                    logger.debug(
                        "Executing schema statement",
                        data={"step": description, "index": index},
                    )
                    conn.exec_driver_sql(statement)
                self.store._upsert_setting(conn, VERSION_SETTING, str(to_version))
        except TimingRemoteError as exc:
            logger.error(
                "Schema migration failed",
                data={"step": description, "version": to_version, "error": exc.message},
            )
            raise MigrationError(f"{description} failed: {exc.message}", version=to_version) from exc
