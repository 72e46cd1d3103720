# catalog/sa/repositories/base.py
from typing import Optional
from sqlalchemy.orm import Session


class BaseRepository:
    def __init__(self, session: Session):
        """Initialize the repository with a database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    def _conflict_insert(self, table):
        """Get a dialect-specific INSERT for the table that supports ON CONFLICT.

        Args:
            table: The Table to insert into

        Returns:
            An Insert construct with on_conflict_do_update/on_conflict_do_nothing,
            or None if the bound dialect has no conflict-target upsert
        """
        name = self.dialect_name
        if name == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert
        elif name == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert
        else:
            return None
        return insert(table)

    def _ignore_insert(self, table):
        """Get an INSERT for the table that silently skips duplicate keys.

        Returns:
            An Insert construct, or None if the dialect has no ignore form
        """
        stmt = self._conflict_insert(table)
        if stmt is not None:
            return stmt.on_conflict_do_nothing()
        if self.dialect_name in ('mysql', 'mariadb'):
            from sqlalchemy.dialects.mysql import insert
            return insert(table).prefix_with('IGNORE')
        return None

    def _rowcount(self, result) -> Optional[int]:
        rowcount = getattr(result, 'rowcount', None)
        return rowcount if rowcount is not None and rowcount >= 0 else None
