"""
Tests for pipeline/mermaid_repair/runner.py and preview.py

End-to-end over in-memory and on-disk documents with a fake parser and a
scripted corrector.
"""

import pytest

from infra.llm.errors import ServiceAuthError, ServiceRateLimitedError
from infra.mermaid.backends import BackendFailure
from infra.mermaid.oracle import ValidationOracle
from pipeline.mermaid_repair.documents import (
    FileDocument,
    InMemoryDocument,
    RepairContext,
    find_markdown_files,
)
from pipeline.mermaid_repair.errors import ContextChangedError, OracleUnavailableError
from pipeline.mermaid_repair.extractor import extract_blocks
from pipeline.mermaid_repair.preview import ApplyPolicy, PreviewDecision, calculate_diff
from pipeline.mermaid_repair.runner import (
    fix_document,
    fix_documents,
    repair_document,
    validate_document,
    validate_documents,
)

TWO_BROKEN = (
    "# Notes\n"
    "```mermaid\n"
    "flowchart TD\n"
    "  A[one] --> B[two]\n"
    "```\n"
    "middle text\n"
    "```mermaid\n"
    "flowchart LR\n"
    "  X[three] --> Y[four]\n"
    "```\n"
)
FIX_0 = 'flowchart TD\n  A["one"] --> B["two"]'
FIX_1 = 'flowchart LR\n  X["three"] --> Y["four"]'


class TestValidate:
    """Test validate-only entry points."""

    def test_reports_each_block(self, strict_oracle, sample_markdown):
        report = validate_document(InMemoryDocument("doc.md", sample_markdown), strict_oracle)

        assert report.total == 2
        assert [b.ok for b in report.blocks] == [True, False]
        assert report.invalid[0].block_index == 1
        assert "unquoted label [Next]" in report.invalid[0].error

    def test_many_documents(self, strict_oracle, sample_markdown):
        docs = [InMemoryDocument("a.md", sample_markdown), InMemoryDocument("b.md", "no diagrams")]
        reports = validate_documents(docs, strict_oracle)
        assert [r.total for r in reports] == [2, 0]

    def test_unavailable_oracle_is_hard_stop(self, sample_markdown):
        with pytest.raises(OracleUnavailableError):
            validate_document(InMemoryDocument("doc.md", sample_markdown), ValidationOracle(None))

    def test_crashed_parser_is_hard_stop(self, sample_markdown, scripted_corrector, make_orchestrator):
        class CrashingParser:
            def parse(self, text):
                raise BackendFailure("node exited with 1: Cannot find package 'mermaid'")

        oracle = ValidationOracle(CrashingParser())
        corrector = scripted_corrector(['flowchart TD\n  A["ok"]'] * 3)
        doc = InMemoryDocument("doc.md", sample_markdown)

        with pytest.raises(OracleUnavailableError, match="Cannot find package"):
            fix_document(doc, oracle, make_orchestrator(corrector, oracle), max_attempts=3)

        assert corrector.calls == []
        assert doc.writes == 0


class TestFixDocument:
    """Test the single-document repair flow."""

    def test_scenario_html_break(self, strict_oracle, scripted_corrector, make_orchestrator):
        text = "intro\n```mermaid\nflowchart TD\n  A[Title<br>Break] --> B[Next]\n```\n"
        doc = InMemoryDocument("doc.md", text)
        fixed = 'flowchart TD\n  A["Title\\nBreak"] --> B["Next"]'
        orchestrator = make_orchestrator(scripted_corrector([fixed]), strict_oracle)

        report = fix_document(doc, strict_oracle, orchestrator)

        assert report.fixed == 1
        assert report.written
        assert doc.text == f"intro\n```mermaid\n{fixed}\n```\n"

    def test_blocks_processed_in_order(self, strict_oracle, scripted_corrector, make_orchestrator):
        corrector = scripted_corrector([FIX_0, FIX_1])
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        report = fix_document(doc, strict_oracle, make_orchestrator(corrector, strict_oracle))

        assert [c["original"] for c in corrector.calls] == [
            "flowchart TD\n  A[one] --> B[two]",
            "flowchart LR\n  X[three] --> Y[four]",
        ]
        assert report.fixed == 2
        assert [b.code for b in extract_blocks(doc.text)] == [FIX_0, FIX_1]

    def test_only_first_fixed_leaves_second_untouched(self, strict_oracle, scripted_corrector, make_orchestrator):
        half = 'flowchart LR\n  X["three"] --> Y[four]'
        corrector = scripted_corrector([FIX_0, half, half])
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        report = fix_document(doc, strict_oracle, make_orchestrator(corrector, strict_oracle), max_attempts=2)

        assert report.fixed == 1
        assert report.failed == 1
        assert doc.text == TWO_BROKEN.replace("  A[one] --> B[two]", '  A["one"] --> B["two"]')
        second = extract_blocks(doc.text)[1]
        assert second.code == "flowchart LR\n  X[three] --> Y[four]"

    def test_valid_document_not_written(self, strict_oracle, scripted_corrector, make_orchestrator):
        doc = InMemoryDocument("doc.md", '```mermaid\ngraph LR\n  a["x"]\n```\n')
        report = fix_document(doc, strict_oracle, make_orchestrator(scripted_corrector([]), strict_oracle))

        assert report.broken_blocks == 0
        assert doc.writes == 0

    def test_auth_error_writes_nothing(self, strict_oracle, scripted_corrector, make_orchestrator):
        corrector = scripted_corrector([FIX_0, ServiceAuthError("401", status_code=401)])
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        with pytest.raises(ServiceAuthError):
            fix_document(doc, strict_oracle, make_orchestrator(corrector, strict_oracle))

        assert doc.writes == 0
        assert doc.text == TWO_BROKEN

    def test_rate_limit_retried_not_aborted(self, strict_oracle, scripted_corrector, make_orchestrator):
        corrector = scripted_corrector([ServiceRateLimitedError("429", status_code=429), FIX_0, FIX_1])
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        report = fix_document(doc, strict_oracle, make_orchestrator(corrector, strict_oracle), max_attempts=3)

        assert report.fixed == 2
        assert report.results[0].attempts == 2

    def test_directive_restored_in_document(self, strict_oracle, scripted_corrector, make_orchestrator):
        directive = "%%{init: {'flowchart': {'htmlLabels': false}}}%%"
        text = f"```mermaid\n{directive}\nflowchart TD\n  A[a]\n```\n"
        doc = InMemoryDocument("doc.md", text)
        corrector = scripted_corrector(['flowchart TD\n  A["a"]'])

        fix_document(doc, strict_oracle, make_orchestrator(corrector, strict_oracle))

        assert extract_blocks(doc.text)[0].code == f'{directive}\nflowchart TD\n  A["a"]'


class TestPreview:
    """Test the apply policy and the preview gate outcomes."""

    def test_skip_keeps_block(self, strict_oracle, scripted_corrector, make_orchestrator):
        decisions = iter([PreviewDecision.SKIP, PreviewDecision.ACCEPT])
        policy = ApplyPolicy("confirm", gate=lambda o, p, b: next(decisions))
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        report = fix_document(
            doc, strict_oracle, make_orchestrator(scripted_corrector([FIX_0, FIX_1]), strict_oracle), policy=policy
        )

        assert report.skipped == 1
        assert report.fixed == 1
        assert [b.code for b in extract_blocks(doc.text)] == ["flowchart TD\n  A[one] --> B[two]", FIX_1]

    def test_accept_all_switches_to_auto_once(self, strict_oracle, scripted_corrector, make_orchestrator):
        seen = []
        persisted = []

        def gate(original, proposed, block):
            seen.append(block.index)
            return PreviewDecision.ACCEPT_ALL

        policy = ApplyPolicy("confirm", gate=gate, on_auto_apply=lambda: persisted.append(True))
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        report = fix_document(
            doc, strict_oracle, make_orchestrator(scripted_corrector([FIX_0, FIX_1]), strict_oracle), policy=policy
        )

        assert seen == [0]
        assert persisted == [True]
        assert policy.mode == "auto"
        assert report.fixed == 2

    def test_calculate_diff(self):
        diff = calculate_diff("a\nb\nc", "a\nB\nc\nd")
        assert [(d.type, d.content) for d in diff] == [
            ("unchanged", "a"),
            ("removed", "b"),
            ("added", "B"),
            ("unchanged", "c"),
            ("added", "d"),
        ]
        assert diff[-1].line_number == 4


class TestContext:
    """Test cancellation and document-change detection."""

    def test_document_changed_between_blocks(self, strict_oracle, scripted_corrector, make_orchestrator):
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        class EditingCorrector:
            def __init__(self):
                self.calls = 0

            def fix(self, *args, **kwargs):
                self.calls += 1
                doc.text = doc.text + "\nuser typed here\n"
                return FIX_0

        orchestrator = make_orchestrator(EditingCorrector(), strict_oracle)
        with pytest.raises(ContextChangedError):
            repair_document(doc, strict_oracle, orchestrator, max_attempts=2)

        assert doc.writes == 0

    def test_cancelled_context(self, strict_oracle, scripted_corrector, make_orchestrator):
        context = RepairContext()
        context.cancel("user left")
        doc = InMemoryDocument("doc.md", TWO_BROKEN)

        with pytest.raises(ContextChangedError, match="user left"):
            repair_document(doc, strict_oracle, make_orchestrator(scripted_corrector([]), strict_oracle), 2, context=context)


class TestFixDocuments:
    """Test the batch flow."""

    def test_declined_confirmation_touches_nothing(self, strict_oracle, scripted_corrector, make_orchestrator):
        docs = [InMemoryDocument("a.md", TWO_BROKEN)]
        corrector = scripted_corrector([])

        report = fix_documents(docs, strict_oracle, make_orchestrator(corrector, strict_oracle), confirm=lambda n: False)

        assert report.aborted
        assert report.abort_kind == "declined"
        assert corrector.calls == []
        assert docs[0].writes == 0

    def test_all_documents_fixed(self, strict_oracle, scripted_corrector, make_orchestrator):
        docs = [InMemoryDocument("a.md", TWO_BROKEN), InMemoryDocument("b.md", TWO_BROKEN)]
        corrector = scripted_corrector([FIX_0, FIX_1, FIX_0, FIX_1])
        asked = []

        report = fix_documents(
            docs, strict_oracle, make_orchestrator(corrector, strict_oracle),
            confirm=lambda n: asked.append(n) or True,
        )

        assert asked == [2]
        assert report.fixed == 4
        assert report.documents_written == 2
        assert not report.aborted

    def test_confirm_mode_skip_leaves_documents(self, strict_oracle, scripted_corrector, make_orchestrator):
        docs = [InMemoryDocument("a.md", TWO_BROKEN), InMemoryDocument("b.md", TWO_BROKEN)]
        corrector = scripted_corrector([FIX_0, FIX_1, FIX_0, FIX_1])
        seen = []

        def gate(original, proposed, block):
            seen.append(block.index)
            return PreviewDecision.SKIP

        report = fix_documents(
            docs, strict_oracle, make_orchestrator(corrector, strict_oracle),
            policy=ApplyPolicy("confirm", gate=gate),
        )

        assert seen == [0, 1, 0, 1]
        assert report.skipped == 4
        assert report.fixed == 0
        assert report.documents_written == 0
        assert [d.read() for d in docs] == [TWO_BROKEN, TWO_BROKEN]
        assert all(d.writes == 0 for d in docs)

    def test_accept_all_carries_to_later_documents(self, strict_oracle, scripted_corrector, make_orchestrator):
        docs = [InMemoryDocument("a.md", TWO_BROKEN), InMemoryDocument("b.md", TWO_BROKEN)]
        corrector = scripted_corrector([FIX_0, FIX_1, FIX_0, FIX_1])
        decisions = iter([PreviewDecision.SKIP, PreviewDecision.ACCEPT_ALL])

        report = fix_documents(
            docs, strict_oracle, make_orchestrator(corrector, strict_oracle),
            policy=ApplyPolicy("confirm", gate=lambda o, p, b: next(decisions)),
        )

        assert report.skipped == 1
        assert report.fixed == 3
        assert report.documents_written == 2

    def test_auth_error_aborts_batch(self, strict_oracle, scripted_corrector, make_orchestrator):
        docs = [
            InMemoryDocument("a.md", TWO_BROKEN),
            InMemoryDocument("b.md", TWO_BROKEN),
            InMemoryDocument("c.md", TWO_BROKEN),
        ]
        corrector = scripted_corrector([FIX_0, FIX_1, ServiceAuthError("401 bad key", status_code=401), FIX_1, FIX_0, FIX_1])

        report = fix_documents(docs, strict_oracle, make_orchestrator(corrector, strict_oracle))

        assert report.aborted
        assert report.abort_kind == "auth"
        assert report.abort_document == "b.md"
        assert docs[0].writes == 1
        assert docs[1].writes == 0
        assert docs[2].writes == 0
        assert len(corrector.calls) == 3

    def test_exhausted_block_does_not_stop_batch(self, strict_oracle, scripted_corrector, make_orchestrator):
        bad = "flowchart TD\n  A[one] --> B[two]"
        docs = [InMemoryDocument("a.md", TWO_BROKEN), InMemoryDocument("b.md", TWO_BROKEN)]
        corrector = scripted_corrector([bad, FIX_1, FIX_0, FIX_1])

        report = fix_documents(docs, strict_oracle, make_orchestrator(corrector, strict_oracle), max_attempts=1)

        assert not report.aborted
        assert report.failed == 1
        assert report.fixed == 3

    def test_cancelled_batch_stops(self, strict_oracle, scripted_corrector, make_orchestrator):
        context = RepairContext()
        context.cancel("interrupted")
        docs = [InMemoryDocument("a.md", TWO_BROKEN)]

        report = fix_documents(
            docs, strict_oracle, make_orchestrator(scripted_corrector([]), strict_oracle), context=context
        )

        assert report.aborted
        assert report.abort_kind == "context_changed"


class TestFileDocuments:
    """Test on-disk documents."""

    def test_crlf_preserved(self, tmp_path, strict_oracle, scripted_corrector, make_orchestrator):
        path = tmp_path / "note.md"
        path.write_bytes(b"title\r\n```mermaid\r\ngraph LR\r\n  a[x]\r\n```\r\nend\r\n")
        corrector = scripted_corrector(['graph LR\r\n  a["x"]'])

        fix_document(FileDocument(path), strict_oracle, make_orchestrator(corrector, strict_oracle))

        assert path.read_bytes() == b'title\r\n```mermaid\r\ngraph LR\r\n  a["x"]\r\n```\r\nend\r\n'

    def test_find_markdown_files(self, tmp_path):
        (tmp_path / "a.md").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.markdown").write_text("x")
        (tmp_path / ".obsidian").mkdir()
        (tmp_path / ".obsidian" / "c.md").write_text("x")
        (tmp_path / "d.txt").write_text("x")

        names = [doc.path.name for doc in find_markdown_files(tmp_path)]
        assert names == ["a.md", "b.markdown"]
