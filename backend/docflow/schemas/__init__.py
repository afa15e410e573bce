from docflow.schemas.workflows import (
    BlockDefinition,
    RagSettingsDefinition,
    WorkflowDefinition,
    build_workflow,
    describe_workflow,
)

__all__ = [
    "BlockDefinition",
    "RagSettingsDefinition",
    "WorkflowDefinition",
    "build_workflow",
    "describe_workflow",
]
