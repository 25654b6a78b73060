#!/usr/bin/env python3
"""
Unit tests for id and ticket code generation.
"""

import unittest
import random
import re
import sys
import threading
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.domain.identifiers import generate_id, generate_ticket_code


class TestGenerateId(unittest.TestCase):

    def test_ids_are_lowercase_base36(self):
        self.assertRegex(generate_id(), r'^[0-9a-z]+$')

    def test_unique_in_a_tight_loop(self):
        ids = [generate_id() for _ in range(5000)]
        self.assertEqual(len(set(ids)), len(ids))

    def test_unique_across_threads(self):
        results = []
        lock = threading.Lock()

        def worker():
            batch = [generate_id() for _ in range(500)]
            with lock:
                results.extend(batch)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 4000)
        self.assertEqual(len(set(results)), 4000)


class TestGenerateTicketCode(unittest.TestCase):

    def test_format(self):
        self.assertRegex(generate_ticket_code(), r'^PKS-[A-Z0-9]{8}$')

    def test_custom_prefix(self):
        self.assertTrue(generate_ticket_code(prefix="TK-").startswith("TK-"))

    def test_seeded_rng_is_reproducible(self):
        self.assertEqual(
            generate_ticket_code(rng=random.Random(7)),
            generate_ticket_code(rng=random.Random(7)),
        )


if __name__ == '__main__':
    unittest.main(verbosity=2)
