"""Connection handles owned by the tenant registry"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from forpharma.exceptions import DatabaseConnectionError
from forpharma.tenancy.state import SchemaName


def _session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


class ControlPlane:
    """Long-lived pool to the shared database holding organizations and users"""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = _session_factory(engine)
        self.closed = False

    def session(self) -> AsyncSession:
        """
        Open a control-plane session.

        Usage:
            async with registry.control_plane.session() as db:
                await db.execute(select(Organization))
        """
        if self.closed:
            raise DatabaseConnectionError("Control-plane connection has been closed")
        return self._sessions()

    async def close(self):
        if not self.closed:
            self.closed = True
            await self.engine.dispose()


class TenantClient:
    """
    Pooled connection bound to exactly one tenant schema.

    Created by TenantRegistry on first access to the schema; lives until the
    registry evicts it or closes all tenant connections. Requests borrow the
    handle for their duration; an evicted handle is retired and only closed
    once its last borrower releases it.
    """

    def __init__(self, schema_name: SchemaName, engine: AsyncEngine):
        self.schema_name = schema_name
        self.engine = engine
        self._sessions = _session_factory(engine)
        self.closed = False
        self.retired = False
        self.borrowers = 0

    def session(self) -> AsyncSession:
        """Open a session whose queries run inside this tenant's schema"""
        if self.closed:
            raise DatabaseConnectionError(
                f"Connection to tenant schema '{self.schema_name}' has been closed"
            )
        return self._sessions()

    def acquire(self):
        """Register a borrower; the handle stays open until it is released"""
        if self.closed:
            raise DatabaseConnectionError(
                f"Connection to tenant schema '{self.schema_name}' has been closed"
            )
        self.borrowers += 1

    async def release(self):
        if self.borrowers > 0:
            self.borrowers -= 1
        if self.retired and self.borrowers == 0:
            await self.close()

    async def retire(self):
        """Close now if unused, otherwise when the last borrower releases"""
        self.retired = True
        if self.borrowers == 0:
            await self.close()

    async def close(self):
        if not self.closed:
            self.closed = True
            await self.engine.dispose()

    def __repr__(self):
        return (
            f"<TenantClient(schema_name={self.schema_name}, closed={self.closed}, "
            f"borrowers={self.borrowers})>"
        )
