"""
Workflow Definitions — Pydantic Schemas

Serializable form of a workflow tree, used to store workflows as JSON and
rebuild the runtime objects in docflow.models.workflows:

    definition = WorkflowDefinition.model_validate_json(raw)
    workflow   = build_workflow(definition)

Runtime-only state (attached documents, aggregated pages, topic summary) is
never part of a definition.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from docflow.models.workflows import Block, BlockType, RagSettings, RagType, Workflow


class RagSettingsDefinition(BaseModel):
    type: RagType = RagType.WHOLE_DOCUMENT
    table_of_contents_input: str | None = Field(
        default=None,
        description="Table of contents model; used by UseAutoDetectedTableOfContents only",
    )


class BlockDefinition(BaseModel):
    name:  str = ""
    order: int = Field(default=0, ge=0)
    type:  BlockType = BlockType.AI_QUERY
    supported_document_classes: list[str] = Field(default_factory=list)
    rag_settings:    list[RagSettingsDefinition] = Field(default_factory=list)
    replacement_tag: str | None = None
    should_use_page_images: bool = False

    @field_validator("supported_document_classes")
    @classmethod
    def strip_classes(cls, v: list[str]) -> list[str]:
        return [c.strip() for c in v if c.strip()]


class WorkflowDefinition(BaseModel):
    name:     str = ""
    order:    int = Field(default=0, ge=0)
    blocks:   list[BlockDefinition] = Field(default_factory=list)
    children: list[WorkflowDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def single_level_nesting(self) -> WorkflowDefinition:
        for child in self.children:
            if child.children:
                raise ValueError(
                    f"Child workflow {child.name!r} has children; "
                    "only one level of nesting is supported."
                )
        return self

    @model_validator(mode="after")
    def unique_block_orders(self) -> WorkflowDefinition:
        orders = [b.order for b in self.blocks]
        if len(orders) != len(set(orders)):
            raise ValueError(f"Workflow {self.name!r} has duplicate block orders: {orders}")
        return self


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def _build_block(definition: BlockDefinition) -> Block:
    block = Block(
        name=definition.name,
        order=definition.order,
        type=definition.type,
        supported_document_classes=list(definition.supported_document_classes),
        replacement_tag=definition.replacement_tag,
        should_use_page_images=definition.should_use_page_images,
    )
    for rag in definition.rag_settings:
        block.add_rag_settings(
            RagSettings(type=rag.type, table_of_contents_input=rag.table_of_contents_input)
        )
    return block


def build_workflow(definition: WorkflowDefinition) -> Workflow:
    """Build a runtime Workflow tree, wiring all back references."""
    workflow = Workflow(name=definition.name, order=definition.order)
    for block in definition.blocks:
        workflow.add_block(_build_block(block))
    for child in definition.children:
        workflow.add_child(build_workflow(child))
    return workflow


def describe_workflow(workflow: Workflow) -> WorkflowDefinition:
    """Inverse of build_workflow; runtime-only state is dropped."""
    return WorkflowDefinition(
        name=workflow.name,
        order=workflow.order,
        blocks=[
            BlockDefinition(
                name=b.name,
                order=b.order,
                type=b.type,
                supported_document_classes=list(b.supported_document_classes),
                rag_settings=[
                    RagSettingsDefinition(
                        type=r.type, table_of_contents_input=r.table_of_contents_input,
                    )
                    for r in b.rag_settings
                ],
                replacement_tag=b.replacement_tag,
                should_use_page_images=b.should_use_page_images,
            )
            for b in workflow.blocks
        ],
        children=[describe_workflow(c) for c in workflow.children],
    )
