"""
Abstract interface for data sources
"""

from abc import ABC, abstractmethod
from typing import Tuple, Type

from ..models import ConnectionRecord, DataSourceType, ExecutionResult, SourceSchema
from .requests import DataRequest


class SchemaExtractionError(Exception):
    """Raised when a source's structure cannot be introspected"""

    def __init__(self, source_name: str, message: str):
        self.source_name = source_name
        super().__init__(f"Schema extraction failed for '{source_name}': {message}")


class UnsupportedRequestError(TypeError):
    """Raised when a request variant is sent to a source that does not accept it"""


class DataSource(ABC):
    """Abstract base class for queryable backends"""
    
    source_type: DataSourceType
    accepted_requests: Tuple[Type, ...] = ()
    
    def __init__(self, connection: ConnectionRecord):
        self.connection = connection
    
    @property
    def id(self) -> str:
        return self.connection.id
    
    @property
    def name(self) -> str:
        return self.connection.name
    
    @property
    def type(self) -> DataSourceType:
        return self.source_type
    
    def execute(self, request: DataRequest) -> ExecutionResult:
        """
        Execute a request against this source.
        
        Args:
            request: Request variant accepted by this source
            
        Returns:
            Execution result
            
        Raises:
            UnsupportedRequestError: If the variant is not accepted here
        """
        if not isinstance(request, self.accepted_requests):
            accepted = ", ".join(cls.__name__ for cls in self.accepted_requests)
            raise UnsupportedRequestError(
                f"{type(self).__name__} cannot execute {type(request).__name__} (accepts: {accepted})"
            )
        return self._execute(request)
    
    @abstractmethod
    def _execute(self, request: DataRequest) -> ExecutionResult:
        """
        Run an accepted request
        
        Args:
            request: Request already checked against accepted_requests
            
        Returns:
            Execution result; failures are reported in the result, not raised
        """
        pass
    
    @abstractmethod
    def extract_schema(self) -> SourceSchema:
        """
        Introspect the source
        
        Returns:
            Schema snapshot
            
        Raises:
            SchemaExtractionError: On connectivity or introspection failure
        """
        pass
    
    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the source is reachable
        
        Returns:
            True if a trivial round trip succeeds
        """
        pass
