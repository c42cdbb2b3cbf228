"""
Shared API dependencies.
Builds the per-request GraphQL context: the store handle, the caller's
identity and fresh batch loaders and services for this unit of work.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from strawberry.fastapi import BaseContext

from app.core.attendance_service import AttendanceService
from app.core.database import MongoStore
from app.core.employee_service import EmployeeService
from app.core.exceptions import UnauthenticatedError
from app.core.loaders import DataLoaders
from app.core.logging import get_logger
from app.core.security import Identity, authenticate
from app.core.stats_service import StatsService

logger = get_logger(__name__)


def get_store(request: Request) -> MongoStore:
    """Store adapter connected by the application lifespan."""
    return request.app.state.store


# Store dependency
# Override get_store in tests to run against another store implementation
StoreDep = Annotated[MongoStore, Depends(get_store)]


class RequestContext(BaseContext):
    """
    Context for one GraphQL request.

    Loaders and services are created here so their caches live exactly as
    long as the request.
    """

    def __init__(
        self,
        store,
        identity: Optional[Identity],
        auth_error: Optional[UnauthenticatedError] = None,
    ):
        super().__init__()
        self.store = store
        self.identity = identity
        self.auth_error = auth_error
        self.loaders = DataLoaders(store)
        self.employees = EmployeeService(store, self.loaders)
        self.attendance = AttendanceService(store, self.loaders)
        self.stats = StatsService(store)


async def get_context(
    store: StoreDep,
    authorization: Annotated[Optional[str], Header()] = None,
) -> RequestContext:
    """
    GraphQL context getter.

    An invalid token does not fail the HTTP request; the error is kept on the
    context and reported by the first resolver that needs an identity.
    """
    try:
        identity = authenticate(authorization)
        auth_error = None
    except UnauthenticatedError as e:
        logger.warning(f"Rejected bearer token: {e.message}")
        identity, auth_error = None, e

    return RequestContext(store, identity, auth_error)
