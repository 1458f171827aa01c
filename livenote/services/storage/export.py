"""
Document export as plain text and Markdown.

Both exports walk ``Document.blocks`` in order and match every block type
explicitly. A note's quoted excerpt is rendered only when its reference
still resolves; dangling references are silently dropped. Output depends
only on the document, so exporting twice yields identical text.
"""

import logging
from typing import Any

import yaml

from livenote.core.models import Document, ExportFormat, NoteBlock, TranscriptionBlock

logger = logging.getLogger(__name__)

TRANSCRIPTION_MARKER = "[Transcription]"
NOTE_MARKER = "[Note]"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_excerpt(document: Document, note: NoteBlock) -> str | None:
    """Return the quoted excerpt of ``note``, or None when there is nothing to quote.

    A note pointing at a block that no longer exists has no excerpt, even if
    it stored one at insertion time.
    """
    if note.referenced_block_id is not None:
        target = document.find_block(note.referenced_block_id)
        if target is None:
            return None
        excerpt = note.referenced_text or target.content
    else:
        excerpt = note.referenced_text
    excerpt = (excerpt or "").strip()
    return excerpt or None


def export_as_text(document: Document) -> str:
    """Plain-text export: title, creation time, then one marked paragraph per block."""
    lines = [
        document.title,
        f"Created: {document.metadata.created_at.strftime(_TIME_FORMAT)}",
        "",
    ]
    for block in document.blocks:
        if isinstance(block, TranscriptionBlock):
            lines.append(f"{TRANSCRIPTION_MARKER} {block.content}")
        elif isinstance(block, NoteBlock):
            excerpt = resolve_excerpt(document, block)
            if excerpt:
                lines.append(f'{NOTE_MARKER} > "{excerpt}"')
                lines.append(f"  {block.content}")
            else:
                lines.append(f"{NOTE_MARKER} {block.content}")
        else:
            raise TypeError(f"Unsupported block type: {type(block).__name__}")
        lines.append("")
    return "\n".join(lines)


def _build_frontmatter(document: Document) -> str:
    """YAML frontmatter block for Markdown exports."""
    meta = document.metadata
    fm: dict[str, Any] = {
        "id": document.id,
        "title": document.title,
        "created": meta.created_at.isoformat(),
        "modified": meta.last_modified.isoformat(),
        "duration_seconds": round(meta.total_duration, 2),
        "segments": len(meta.audio_segments),
        "blocks": len(document.blocks),
    }
    if meta.master_audio_uri:
        fm["audio"] = meta.master_audio_uri
    yaml_str: str = yaml.dump(fm, allow_unicode=True, default_flow_style=False, sort_keys=False)
    return "---\n" + yaml_str.strip() + "\n---"


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" if line else ">" for line in text.splitlines())


def export_as_markdown(document: Document) -> str:
    """Markdown export with YAML frontmatter; quoted excerpts become blockquotes."""
    parts = [_build_frontmatter(document), "", f"# {document.title}", ""]
    for block in document.blocks:
        if isinstance(block, TranscriptionBlock):
            label = f"**{block.speaker_label}:** " if block.speaker_label else ""
            parts.append(f"{label}{block.content}")
        elif isinstance(block, NoteBlock):
            excerpt = resolve_excerpt(document, block)
            body = f"**Note:** {block.content}"
            if excerpt:
                body = f"{_quote(excerpt)}\n\n{body}"
            parts.append(body)
        else:
            raise TypeError(f"Unsupported block type: {type(block).__name__}")
        parts.append("")
    return "\n".join(parts)


def export_document(document: Document, fmt: ExportFormat | str = ExportFormat.text) -> str:
    """Dispatch to the exporter for ``fmt``."""
    fmt = ExportFormat(fmt)
    logger.debug("Exporting document %s as %s", document.id, fmt)
    if fmt == ExportFormat.markdown:
        return export_as_markdown(document)
    return export_as_text(document)
