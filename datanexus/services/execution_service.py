"""Dispatches data requests to data sources and aggregates the results"""
import time
import logging
from typing import Dict, List, Optional

from ..datasources.base import DataSource
from ..datasources.registry import DataSourceRegistry, get_registry
from ..datasources.requests import DataRequest, describe, query_text
from ..models import QueryResult
from . import plan_executor
from .query_execution import sanitize_error_message

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class UnifiedExecutionService:
    """
    Runs a batch of requests across sources.

    Requests execute in step order. A request with ``outputAs`` binds a
    variable from its result; later requests get bound variables substituted
    before they run. One request's failure never aborts the batch.
    """

    def __init__(self, registry: Optional[DataSourceRegistry] = None):
        self.registry = registry or get_registry()

    def execute_all(
        self,
        requests: List[DataRequest],
        connection_ids: List[str],
        user_id: Optional[str] = None
    ) -> List[QueryResult]:
        """
        Execute every request and collect one result entry per request.

        Args:
            requests: Data requests, possibly chained through step/dependsOn
            connection_ids: Connections selected for this turn, first is the default
            user_id: Caller; connections of other users are not resolved

        Returns:
            Result entries in execution order, successes and failures interleaved
        """
        logger.info(f"Executing {len(requests)} data requests across {len(connection_ids)} connections")

        variables: Dict[str, str] = {}
        results: List[QueryResult] = []

        for request in plan_executor.order(requests):
            if plan_executor.has_dependency(request):
                missing = plan_executor.unbound_variables(request, variables)
                if missing:
                    logger.warning(f"Step {request.step} depends on unbound variables {missing}")
                    results.append(QueryResult(
                        connectionId=request.sourceId,
                        query=query_text(request),
                        explanation=describe(request),
                        errorMessage=(
                            f"Unresolved variables {', '.join(missing)}: "
                            f"step {request.dependsOn} produced no value"
                        ),
                        step=request.step,
                    ))
                    continue

            request = plan_executor.apply_variables(request, variables)
            result = self.execute_request(request, connection_ids, user_id)
            results.append(result)

            if request.outputAs and result.succeeded:
                field = request.outputField or (result.columns[0] if result.columns else None)
                value = plan_executor.extract_output_value(result.data, field)
                if value is not None:
                    name = plan_executor.variable_name(request.outputAs)
                    variables[name] = value
                    logger.info(f"Step {request.step} bound {name} = {value[:200]}")

        return results

    def execute_request(
        self,
        request: DataRequest,
        connection_ids: List[str],
        user_id: Optional[str] = None
    ) -> QueryResult:
        """Execute one request; every failure becomes an error entry"""
        start = time.perf_counter()
        explanation = describe(request)
        connection_id = self.target_connection_id(request, connection_ids, user_id)

        source = self._resolve(connection_id, user_id) if connection_id else None
        if source is None:
            logger.warning(f"Connection not found: {connection_id}")
            return QueryResult(
                connectionId=connection_id,
                query=query_text(request),
                explanation=explanation,
                errorMessage="Connection not found",
                step=request.step,
            )

        try:
            if not source.is_available():
                return QueryResult(
                    connectionId=source.id,
                    connectionName=source.name,
                    query=query_text(request),
                    explanation=explanation,
                    errorMessage="Data source not available",
                    executionTimeMs=_elapsed_ms(start),
                    step=request.step,
                )

            result = source.execute(request)
        except Exception as e:
            logger.error(f"Failed to execute request on {source.name}: {e}")
            return QueryResult(
                connectionId=source.id,
                connectionName=source.name,
                query=query_text(request),
                explanation=explanation,
                errorMessage=sanitize_error_message(f"Execution failed: {e}"),
                executionTimeMs=_elapsed_ms(start),
                step=request.step,
            )

        elapsed = _elapsed_ms(start)
        if not result.success:
            logger.warning(f"Request on {source.name} failed: {result.error_message}")
            return QueryResult(
                connectionId=source.id,
                connectionName=source.name,
                query=query_text(request),
                explanation=explanation,
                errorMessage=sanitize_error_message(result.error_message),
                executionTimeMs=elapsed,
                step=request.step,
            )

        logger.info(f"Request on {source.name} returned {result.row_count} rows in {elapsed}ms")
        return QueryResult(
            connectionId=source.id,
            connectionName=source.name,
            query=query_text(request),
            data=result.data,
            columns=result.columns,
            rowCount=result.row_count,
            explanation=explanation,
            executionTimeMs=elapsed,
            step=request.step,
        )

    def target_connection_id(
        self,
        request: DataRequest,
        connection_ids: List[str],
        user_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Connection a request runs against.

        An explicit sourceId wins. Otherwise the first selected connection
        whose source accepts the request variant, then the first selected
        connection.
        """
        if request.sourceId:
            return request.sourceId
        if not connection_ids:
            return None
        for connection_id in connection_ids:
            source = self._resolve(connection_id, user_id)
            if source is not None and isinstance(request, source.accepted_requests):
                return connection_id
        return connection_ids[0]

    def _resolve(self, connection_id: str, user_id: Optional[str]) -> Optional[DataSource]:
        try:
            return self.registry.resolve(connection_id, user_id)
        except Exception as e:
            logger.error(f"Failed to resolve connection {connection_id}: {e}")
            return None


_service: Optional[UnifiedExecutionService] = None


def get_execution_service() -> UnifiedExecutionService:
    """Get or create the global execution service"""
    global _service
    if _service is None:
        _service = UnifiedExecutionService()
    return _service
