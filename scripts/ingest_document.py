#!/usr/bin/env python3
"""
Document Ingestion Script

Splits a plain-text file into fragments and stores them in a namespace as
<documentId>-<ordinal>. Prints the chunk count needed to fetch the
transcript back.

Usage:
    python scripts/ingest_document.py NAMESPACE FILE --folder NAME [--document-id ID] [--dry-run]
"""

import sys
import argparse
import asyncio
import time
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def build_metadata(path: Path, folder: str) -> dict:
    stat = path.stat()
    return {
        "filename": path.name,
        "filepath": str(path.resolve()),
        "fileType": path.suffix.lstrip(".") or "txt",
        "fileSize": stat.st_size,
        "createdAt": int(stat.st_ctime * 1000),
        "updatedAt": int(stat.st_mtime * 1000),
        "folderName": folder,
    }


def main():
    parser = argparse.ArgumentParser(description="Chunk a text file and store its fragments")
    parser.add_argument("namespace", help="Namespace (account id) to store into")
    parser.add_argument("file", type=Path, help="UTF-8 text file to ingest")
    parser.add_argument("--folder", required=True, help="Watch folder name recorded on every fragment")
    parser.add_argument("--document-id", help="Document id (defaults to the file stem)")
    parser.add_argument("--dry-run", action="store_true", help="Show the chunking without storing anything")
    args = parser.parse_args()

    from panlo.common.chunking import split_text_into_chunks
    from panlo.common.config import load_config
    from panlo.common.context import build_context
    from panlo.retriever.engine import RetrievalEngine

    if not args.file.is_file():
        print(f"[Ingest] ERROR: {args.file} is not a file")
        sys.exit(1)

    config = load_config()
    text = args.file.read_text(encoding="utf-8")
    document_id = args.document_id or args.file.stem
    metadata = build_metadata(args.file, args.folder)

    if args.dry_run:
        chunks = split_text_into_chunks(text, config.retriever.chunk_size_bytes)
        print(f"[Ingest] DRY RUN - {document_id} would be stored as {len(chunks)} fragments")
        for ordinal, chunk in enumerate(chunks):
            print(f"[Ingest]   {document_id}-{ordinal}: {len(chunk.encode('utf-8'))} bytes")
        return

    engine = RetrievalEngine(build_context(config), config=config.retriever)
    started = time.time()
    chunk_count = asyncio.run(engine.upsert_document(args.namespace, document_id, text, metadata))
    print(f"[Ingest] Stored {document_id} as {chunk_count} fragments in {time.time() - started:.1f}s")
    print(f"[Ingest] chunkCount={chunk_count}")


if __name__ == "__main__":
    main()
