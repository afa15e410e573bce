"""
docflow — Document Processing + Workflow Context Loading
═════════════════════════════════════════════════════════

Two engines:

  DocumentProcessingService   PDF / image / CSV / spreadsheet → pages with
                              text, overviews and embedding vectors
  WorkflowContextService      attaches processed documents to the blocks of a
                              workflow tree and triggers topic / ToC generation
"""

__version__ = "1.0.0"
