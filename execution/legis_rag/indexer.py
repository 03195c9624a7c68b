"""
Legislation Indexer

Parses Justice Canada XML files, chunks them, embeds the chunks and writes
documents, sections and chunks to the store. A file that fails to parse is
skipped; the rest of the batch continues.

Usage:
    python -m execution.legis_rag.indexer --dir data/eng/acts --init-schema
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, asdict

from .chunker import LegislationChunker
from .document_parser import LegislationParser
from .errors import ParseError

logger = logging.getLogger(__name__)


@dataclass
class IndexStats:
    """Counters for one indexing run."""
    files_seen: int = 0
    documents_indexed: int = 0
    chunks_indexed: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class LegislationIndexer:
    """
    Parse -> chunk -> embed -> store.

    Usage:
        indexer = LegislationIndexer(store=store, embedding_service=embeddings)
        stats = indexer.index_paths(Path("data/eng/acts").glob("*.xml"))
    """

    def __init__(
        self,
        store,
        embedding_service,
        parser: Optional[LegislationParser] = None,
        chunker: Optional[LegislationChunker] = None,
    ):
        self.store = store
        self.embeddings = embedding_service
        self.parser = parser or LegislationParser()
        self.chunker = chunker or LegislationChunker()

    def index_document(self, document) -> int:
        """
        Index one parsed document (one language). Existing rows for the same
        document and language are replaced.

        Chunks are embedded before anything is written, and the document,
        its sections and its chunks are then stored together. If embedding
        fails the stored version is left as it was.

        Returns:
            Number of chunks written
        """
        chunks = self.chunker.chunk_document(document)
        if chunks:
            embeddings = self.embeddings.embed_documents([c.content for c in chunks])
        else:
            logger.warning(f"No chunks for {document.document_type} {document.document_id}")
            embeddings = []

        self.store.replace_document(document, [c.to_dict() for c in chunks], embeddings)
        return len(chunks)

    def index_file(self, path, language: Optional[str] = None) -> int:
        """
        Parse and index one XML file.

        Raises:
            ParseError: the file cannot be read or is not legislation XML
        """
        document = self.parser.parse_file(str(path), language=language)
        return self.index_document(document)

    def index_paths(self, paths, language: Optional[str] = None) -> IndexStats:
        """Index many files. Parse failures are logged and counted, not raised."""
        stats = IndexStats()
        paths = list(paths)
        for i, path in enumerate(paths, 1):
            stats.files_seen += 1
            logger.info(f"[{i}/{len(paths)}] Processing: {Path(path).name}")
            try:
                n_chunks = self.index_file(path, language=language)
            except ParseError as e:
                logger.warning(f"Skipping {path}: {e}")
                stats.failed.append(str(path))
                continue
            stats.documents_indexed += 1
            stats.chunks_indexed += n_chunks
            logger.info(f"  -> {n_chunks} chunks")
        return stats


def main():
    from dotenv import load_dotenv

    from .embeddings import get_embedding_service
    from .language_config import LanguageConfig
    from .vector_store import VectorStore

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    arg_parser = argparse.ArgumentParser(description="Index Canadian federal legislation XML")
    arg_parser.add_argument(
        "--dir",
        type=str,
        required=True,
        help="Directory containing act/regulation XML files (searched recursively)",
    )
    arg_parser.add_argument(
        "--language",
        choices=["en", "fr"],
        default=None,
        help="Source language (default: inferred from eng/fra in the path)",
    )
    arg_parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create tables before indexing",
    )
    arg_parser.add_argument(
        "--build-index",
        action="store_true",
        help="Build the HNSW index after indexing",
    )
    args = arg_parser.parse_args()

    input_dir = Path(args.dir)
    if not input_dir.exists():
        logger.error(f"Directory not found: {input_dir}")
        sys.exit(1)

    xml_files = sorted(input_dir.rglob("*.xml"))
    if not xml_files:
        logger.error(f"No XML files found in {input_dir}")
        sys.exit(1)
    logger.info(f"Found {len(xml_files)} XML files in {input_dir}")

    language_config = LanguageConfig.for_language(args.language or "en")
    store = VectorStore()
    store.connect()
    if args.init_schema:
        store.initialize_schema()

    indexer = LegislationIndexer(
        store=store,
        embedding_service=get_embedding_service(language_config=language_config),
    )

    start_time = time.time()
    try:
        stats = indexer.index_paths(xml_files, language=args.language)
        if args.build_index:
            store.create_hnsw_index()
    finally:
        store.close()
    elapsed = time.time() - start_time

    print("\n" + "=" * 60)
    print("INDEXING COMPLETE")
    print("=" * 60)
    print(f"Files processed: {stats.documents_indexed}/{stats.files_seen} ({len(stats.failed)} failed)")
    print(f"Total chunks:    {stats.chunks_indexed}")
    print(f"Time elapsed:    {elapsed:.1f}s")
    print("=" * 60)


if __name__ == "__main__":
    main()
