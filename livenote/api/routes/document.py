"""
Document REST endpoints.

Editing, export, summary and persistence of the open document. All
endpoints delegate to the active :class:`Notebook`.
"""

from fastapi import APIRouter, Query

from livenote.core.models import (
    Block,
    BlockUpdate,
    Document,
    DocumentSummary,
    DocumentUpdate,
    ExportFormat,
    ExportResponse,
    NoteCreate,
    NoteCreateResponse,
    SummaryResult,
)
from livenote.services.notebook import get_notebook
from livenote.services.storage.database import get_session
from livenote.services.storage.export import export_document
from livenote.services.storage.repository import DocumentRepository

router = APIRouter(tags=["document"])


@router.get("/document", response_model=Document)
async def read_document():
    """Return the open document."""
    return get_notebook().document


@router.patch("/document", response_model=Document)
async def update_document(body: DocumentUpdate):
    """Rename the open document."""
    notebook = get_notebook()
    notebook.set_title(body.title)
    return notebook.document


@router.post("/document/notes", response_model=NoteCreateResponse, status_code=201)
async def create_note(body: NoteCreate):
    """Insert a user note, optionally after a block and quoting another."""
    block_id = get_notebook().add_note(
        body.text,
        after_block_id=body.after_block_id,
        referenced_block_id=body.referenced_block_id,
        referenced_text=body.referenced_text,
    )
    return NoteCreateResponse(block_id=block_id)


@router.patch("/document/blocks/{block_id}", response_model=Block)
async def update_block(block_id: str, body: BlockUpdate):
    """Replace a block's content with edited text."""
    return get_notebook().update_block(block_id, body.content)


@router.delete("/document/blocks/{block_id}", status_code=204)
async def delete_block(block_id: str):
    get_notebook().delete_block(block_id)


@router.get("/document/export", response_model=ExportResponse)
async def export_open_document(format: ExportFormat = Query(ExportFormat.text)):
    """Export the open document as plain text or Markdown."""
    return ExportResponse(format=format, content=export_document(get_notebook().document, format))


@router.post("/document/summary", response_model=SummaryResult)
async def summarize_document():
    """Summarize the open document with the configured LLM."""
    return await get_notebook().summarize()


@router.post("/document/save", response_model=DocumentSummary)
async def save_document():
    return await get_notebook().save()


@router.post("/documents/{document_id}/load", response_model=Document)
async def load_document(document_id: str):
    """Replace the open document with a stored one."""
    return await get_notebook().load(document_id)


@router.get("/documents", response_model=list[DocumentSummary])
async def list_documents(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List stored documents, most recently modified first."""
    async with get_session() as session:
        repo = DocumentRepository(session)
        return await repo.list_documents(limit=limit, offset=offset)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(document_id: str):
    async with get_session() as session:
        repo = DocumentRepository(session)
        await repo.delete(document_id)
