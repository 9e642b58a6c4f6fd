"""
tests/test_context.py
---------------------
Unit tests for the shared job queue and DDL sink.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import io
import threading
from collections import Counter

from oracle_to_postgresql_pkg.config import TransferSettings
from oracle_to_postgresql_pkg.context import DDLSink, JobQueue, TransferContext


class TestJobQueue:
    def test_pop_in_push_order(self) -> None:
        queue = JobQueue(["A", "B"])
        assert queue.pop() == "A"
        assert queue.pop() == "B"
        assert queue.pop() is None

    def test_push_skips_pending_names(self) -> None:
        queue = JobQueue(["A"])
        assert queue.push(["A", "B", "B"]) == 1
        assert queue.pending() == ["A", "B"]

    def test_initialize_replaces_pending(self) -> None:
        queue = JobQueue(["OLD"])
        queue.initialize(["X", "Y"])
        assert queue.pending() == ["X", "Y"]
        assert len(queue) == 2

    def test_concurrent_pop_hands_out_each_name_once(self) -> None:
        names = [f"T{i:04d}" for i in range(2000)]
        queue = JobQueue(names)
        popped = []
        lock = threading.Lock()
        start = threading.Barrier(8)

        def worker():
            start.wait()
            mine = []
            while True:
                name = queue.pop()
                if name is None:
                    break
                mine.append(name)
            with lock:
                popped.extend(mine)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        counts = Counter(popped)
        assert set(counts) == set(names)
        assert all(n == 1 for n in counts.values())
        assert len(queue) == 0


class TestDDLSink:
    def test_statement_terminated(self) -> None:
        out = io.StringIO()
        DDLSink(out).statement("DROP TABLE A.B CASCADE")
        assert out.getvalue() == "DROP TABLE A.B CASCADE;\n"

    def test_banners(self) -> None:
        out = io.StringIO()
        sink = DDLSink(out)
        sink.section("Table S.T")
        sink.subsection("Indexes for table S.T")
        sink.comment("GRANT ALL ON SCHEMA S TO public;")
        assert out.getvalue() == (
            "\n--\n-- Table S.T\n--\n\n"
            "\n-- Indexes for table S.T\n"
            "--GRANT ALL ON SCHEMA S TO public;\n"
        )

    def test_close_closes_file_streams(self) -> None:
        out = io.StringIO()
        DDLSink(out).close()
        assert out.closed

    def test_concurrent_statements_are_whole_lines(self) -> None:
        out = io.StringIO()
        sink = DDLSink(out)

        def worker(n):
            for i in range(200):
                sink.statement(f"SELECT {n}, {i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        lines = out.getvalue().splitlines()
        assert len(lines) == 800
        assert all(line.startswith("SELECT ") and line.endswith(";") for line in lines)


class TestTransferContext:
    def test_initialize_jobs_from_settings(self) -> None:
        context = TransferContext(settings=TransferSettings(tables=("B", "A")), ddl=DDLSink(io.StringIO()))
        context.initialize_jobs()
        assert context.jobs.pending() == ["A", "B"]
