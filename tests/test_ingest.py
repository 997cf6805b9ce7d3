#!/usr/bin/env python3
"""Tests for knowledge-base ingestion and the FAISS retriever."""

import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shopchat.app.retrieval import KnowledgeRetriever, create_faiss_index
from shopchat.scripts.ingest_data import chunk_text, process_directory


class TestChunking(unittest.TestCase):

    def test_short_text_is_one_chunk(self):
        self.assertEqual(chunk_text("We open at seven. We close at seven."), ["We open at seven. We close at seven."])

    def test_long_text_is_split_with_overlap(self):
        text = ". ".join(f"sentence number {i} has some words" for i in range(12))
        chunks = chunk_text(text, chunk_size=20)
        self.assertGreater(len(chunks), 1)
        # each chunk starts with the tail of the previous one
        self.assertIn(chunks[1].split(". ")[0], chunks[0])


class TestIngestAndRetrieve(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        raw = os.path.join(self.tmp, "raw")
        os.makedirs(raw)
        with open(os.path.join(raw, "about.txt"), "w", encoding="utf-8") as f:
            f.write("=== Opening Hours ===\nWe open at 7 AM.\n\n=== Location ===\nWe are on Market Street.\n")
        with open(os.path.join(raw, "menu.csv"), "w", encoding="utf-8") as f:
            f.write("category,item,price,description\nCoffee,Latte,4.75,Espresso with steamed milk.\n")
        with open(os.path.join(raw, "popularity_recommendation.csv"), "w", encoding="utf-8") as f:
            f.write("product,product_category,number_of_transactions\nLatte,Coffee,10\n")
        self.raw = raw
        self.chunks_file = os.path.join(self.tmp, "processed", "chunks.json")
        self.index_file = os.path.join(self.tmp, "processed", "faiss_index.bin")

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_process_directory(self):
        chunks = process_directory(self.raw, self.chunks_file)

        texts = [c["text"] for c in chunks]
        self.assertEqual(len(chunks), 3)
        self.assertIn("Opening Hours: We open at 7 AM.", texts)
        self.assertIn("Latte (Coffee) costs $4.75. Espresso with steamed milk.", texts)
        with open(self.chunks_file, encoding="utf-8") as f:
            self.assertEqual(json.load(f), chunks)

    def test_index_round_trip(self):
        process_directory(self.raw, self.chunks_file)
        embedder = MagicMock()
        # one axis per chunk so nearest-neighbour search is unambiguous
        embedder.embed_batch.side_effect = lambda texts: [
            [1.0 if i == j else 0.0 for j in range(len(texts))] for i in range(len(texts))
        ]
        self.assertEqual(create_faiss_index(self.chunks_file, self.index_file, embedder), 3)

        retriever = KnowledgeRetriever(index_path=self.index_file, chunks_path=self.chunks_file)
        passages = retriever.search([0.0, 1.0, 0.0], k=2)
        self.assertEqual(len(passages), 2)
        self.assertEqual(passages[0].score, 1.0)
        self.assertGreaterEqual(passages[0].score, passages[1].score)

    def test_missing_index_returns_nothing(self):
        retriever = KnowledgeRetriever(index_path=os.path.join(self.tmp, "nope.bin"),
                                       chunks_path=os.path.join(self.tmp, "nope.json"))
        self.assertEqual(retriever.search([0.1, 0.2]), [])


if __name__ == "__main__":
    unittest.main()
