#!/usr/bin/env python3
"""
Data ingestion script for the storefront chatbot.

Turns the shop's text documents and the menu CSV into searchable chunks with
metadata, and optionally builds the FAISS index the Details agent searches.

Usage:
    python -m shopchat.scripts.ingest_data --build-index
"""

import argparse
import csv
import json
import os
import re
import uuid
from typing import Any, Dict, List

from ..app.config import Config
from ..app.retrieval import create_faiss_index
from ..utils.logger import get_logger

logger = get_logger()

# Configuration
CHUNK_SIZE = 250  # Target words per chunk
INPUT_DIR = os.path.dirname(Config.MENU_PATH)

# Recommendation tables live next to the menu but are not knowledge-base text
SKIP_FILES = {
    os.path.basename(Config.APRIORI_PATH),
    os.path.basename(Config.POPULARITY_PATH),
}


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE) -> List[str]:
    """
    Split text into chunks of about chunk_size words, on sentence boundaries.

    Consecutive chunks share roughly the last third of the previous chunk's sentences.
    """
    sentences = [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]
    chunks = []
    current: List[str] = []
    current_length = 0

    for sentence in sentences:
        sentence_length = len(sentence.split())
        if current_length + sentence_length > chunk_size and current:
            chunks.append(". ".join(current) + ".")
            overlap = max(1, len(current) // 3)
            current = current[-overlap:] if overlap < len(current) else []
            current_length = sum(len(s.split()) for s in current)
        current.append(sentence)
        current_length += sentence_length

    if current:
        chunks.append(". ".join(current) + ".")
    return chunks


def process_text_file(filepath: str) -> List[Dict[str, Any]]:
    """Chunk a text file whose sections are introduced by `=== Title ===` lines."""
    with open(filepath, "r", encoding="utf-8") as f:
        content = f.read()

    chunks = []
    section_title = "General"
    for i, section in enumerate(re.split(r"===\s*(.*?)\s*===", content)):
        if i % 2 == 1:
            section_title = section.strip()
            continue
        if not section.strip():
            continue
        for chunk in chunk_text(section.strip()):
            chunks.append({
                "id": str(uuid.uuid4()),
                "category": "general_info",
                "text": f"{section_title}: {chunk}",
                "source": f"{os.path.basename(filepath)}#{section_title}",
            })

    logger.info(f"[INGEST] {len(chunks)} chunks from {filepath}")
    return chunks


def process_menu_file(filepath: str) -> List[Dict[str, Any]]:
    """One chunk per menu row, phrased as a sentence."""
    chunks = []
    with open(filepath, "r", encoding="utf-8", newline="") as f:
        for i, row in enumerate(csv.DictReader(f)):
            name = (row.get("item") or "").strip()
            if not name:
                continue
            text = f"{name} ({row.get('category', '').strip()}) costs ${float(row.get('price') or 0):.2f}."
            description = (row.get("description") or "").strip()
            if description:
                text += f" {description}"
            chunks.append({
                "id": str(uuid.uuid4()),
                "category": "menu",
                "text": text,
                "source": f"{os.path.basename(filepath)}#row_{i + 1}",
            })

    logger.info(f"[INGEST] {len(chunks)} chunks from {filepath}")
    return chunks


def process_directory(input_dir: str, output_file: str) -> List[Dict[str, Any]]:
    """
    Process all supported files in a directory and save chunks to output file.

    Args:
        input_dir: Directory containing input files
        output_file: Path to output JSON file

    Returns:
        The chunks that were written
    """
    all_chunks: List[Dict[str, Any]] = []
    for filename in sorted(os.listdir(input_dir)):
        filepath = os.path.join(input_dir, filename)
        if not os.path.isfile(filepath) or filename in SKIP_FILES:
            continue
        if filename.endswith(".txt"):
            all_chunks.extend(process_text_file(filepath))
        elif filename.endswith(".csv"):
            all_chunks.extend(process_menu_file(filepath))
        else:
            logger.info(f"[INGEST] Skipping unsupported file type: {filename}")

    os.makedirs(os.path.dirname(output_file) or ".", exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(all_chunks, f, indent=2, ensure_ascii=False)
    logger.info(f"[INGEST] Saved {len(all_chunks)} chunks to {output_file}")
    return all_chunks


def main():
    parser = argparse.ArgumentParser(description="Ingest shop data into the knowledge base")
    parser.add_argument("--input", "-i", default=INPUT_DIR,
                        help="Input directory containing raw data files")
    parser.add_argument("--output", "-o", default=Config.CHUNKS_FILE_PATH,
                        help="Output file for processed chunks")
    parser.add_argument("--index", default=Config.FAISS_INDEX_PATH,
                        help="Where to write the FAISS index")
    parser.add_argument("--build-index", action="store_true",
                        help="Embed the chunks and build the FAISS index")
    args = parser.parse_args()

    process_directory(args.input, args.output)
    if args.build_index:
        create_faiss_index(args.output, args.index)


if __name__ == "__main__":
    main()
