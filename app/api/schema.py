"""
GraphQL schema and FastAPI router.

Unexpected errors are logged with their traceback and, in production, masked
to a generic message. Errors raised deliberately by the resolvers (auth
failures, query validation) always reach the caller with their code.
"""

from typing import Optional

import strawberry
from graphql import GraphQLError
from strawberry.extensions import MaskErrors
from strawberry.fastapi import GraphQLRouter
from strawberry.types import ExecutionContext

from app.api.dependencies import get_context
from app.api.resolvers import Mutation, Query
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.logging import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def is_unexpected(error: GraphQLError) -> bool:
    """True for errors not raised deliberately by the service."""
    original = error.original_error
    return original is not None and not isinstance(original, (GraphQLError, AppError))


def should_mask_error(error: GraphQLError) -> bool:
    return settings.is_production and is_unexpected(error)


class EmployeeSchema(strawberry.Schema):
    def process_errors(
        self,
        errors: list[GraphQLError],
        execution_context: Optional[ExecutionContext] = None,
    ) -> None:
        for error in errors:
            if is_unexpected(error):
                logger.error(
                    f"Unhandled error resolving {error.path}: {error.original_error}",
                    exc_info=error.original_error,
                )
            else:
                code = error.extensions.get("code") if error.extensions else None
                logger.info(f"GraphQL error at {error.path} ({code}): {error.message}")


schema = EmployeeSchema(
    query=Query,
    mutation=Mutation,
    extensions=[
        lambda: MaskErrors(
            should_mask_error=should_mask_error, error_message=INTERNAL_ERROR_MESSAGE
        )
    ],
)


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(
        schema,
        context_getter=get_context,
        graphql_ide=None if settings.is_production else "graphiql",
    )
