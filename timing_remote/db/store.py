"""The composed store every backend specializes."""

from timing_remote.db.accounts import AccountQueries
from timing_remote.db.base import SQLStoreBase
from timing_remote.db.keys import KeyQueries
from timing_remote.db.notifications import NotificationQueries
from timing_remote.db.reads import ReadQueries


class SQLStore(AccountQueries, KeyQueries, ReadQueries, NotificationQueries, SQLStoreBase):
    """Account, key, read, notification and settings storage over one engine.

    Subclasses supply the DDL catalog, the dialect-specific insert/upsert
    statements and the engine factory.
    """

    @classmethod
    def create_engine(cls, url, settings):
        raise NotImplementedError
