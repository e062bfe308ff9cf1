"""
Visit service interface.

The visit service is authoritative for job visits; the engine only asks it
to create one per promoted occurrence.
"""

from abc import ABC, abstractmethod

from dispatch.models.visit import JobVisit, VisitCreate


class IVisitService(ABC):
    """Abstract interface for the external visit collaborator."""

    @abstractmethod
    async def create_visit(self, data: VisitCreate) -> JobVisit:
        """
        Create a job visit.

        Raises:
            ExternalServiceError: creation failed or timed out (retryable)
            InvalidStateError: a visit already exists for the occurrence
        """
        pass
