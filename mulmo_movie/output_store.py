"""
mulmo_movie/output_store.py
============================
Output Store: mulmo-movie

Serialises the ``mulmo_view.json`` document. Every write is a full rewrite
to a temporary sibling followed by ``os.replace``, so readers (and the next
run) only ever see a complete document. Serialisation is deterministic:
the same document always produces the same bytes.
"""

import json
import logging
import os
from pathlib import Path

from mulmo_movie.models import OutputDocument

logger = logging.getLogger("mulmo_movie.output_store")


def render_document(document: OutputDocument) -> str:
    """Return the JSON text written for *document*."""
    return json.dumps(document.to_dict(), ensure_ascii=False, indent=2) + "\n"


def write_document(path: str | Path, document: OutputDocument) -> None:
    """Atomically replace the document at *path*."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(f".{target.name}.partial")
    partial.write_text(render_document(document), encoding="utf-8")
    os.replace(partial, target)
    logger.debug(
        "Checkpoint written: %d beats → %s", len(document.beats), target,
    )
