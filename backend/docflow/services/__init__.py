from docflow.services.document_processing import DocumentProcessingService
from docflow.services.workflow_context import WorkflowContextService

__all__ = ["DocumentProcessingService", "WorkflowContextService"]
