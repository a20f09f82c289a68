"""
test_server.py - Testes de integração dos handlers do servidor

Propósito:
    Validar o fluxo didOpen/didChange → análise → publicação, hover,
    completion, didClose e configuração, usando um servidor falso com
    DocumentStore real e analisador controlado.
"""

from __future__ import annotations

import sys
import types
from unittest.mock import MagicMock

import pytest
from lsprotocol.types import (
    CompletionParams,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    HoverParams,
    Position,
    Range,
    TextDocumentContentChangeEvent_Type1,
    TextDocumentContentChangeEvent_Type2,
    TextDocumentIdentifier,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
)

from homescript_lsp.analyzer import (
    AnalysisResult,
    DiagnosticRecord,
    Location,
    NullAnalyzer,
    Severity,
    Span,
    SymbolRecord,
)
from homescript_lsp.publisher import DiagnosticsPublisher
from homescript_lsp.server import (
    apply_settings,
    completion,
    did_change,
    did_change_configuration,
    did_close,
    did_open,
    hover,
    refresh_diagnostics,
)
from homescript_lsp.store import DocumentStore

URI = "file:///ws/lamp.hms"


# --- Fakes ---


class SyncExecutor:
    """Executa a tarefa imediatamente, na thread do teste."""

    def submit(self, fn, *args, **kwargs):
        fn(*args, **kwargs)


class FakeAnalyzer:
    """Reporta um erro por ocorrência de "error" e símbolo em "lamp"."""

    def __init__(self):
        self.sources = []

    def analyze(self, source, path, environment):
        self.sources.append(source)
        diagnostics = []
        symbols = []
        for line_no, line in enumerate(source.split("\n"), start=1):
            col = line.find("error")
            if col != -1:
                diagnostics.append(
                    DiagnosticRecord(
                        severity=Severity.ERROR,
                        span=Span(Location(line_no, col + 1), Location(line_no, col + 5)),
                        kind="SyntaxError",
                        message="unexpected error",
                    )
                )
            col = line.find("lamp")
            if col != -1:
                symbols.append(
                    SymbolRecord(
                        span=Span(Location(line_no, col + 1), Location(line_no, col + 4)),
                        type="bool",
                    )
                )
        return AnalysisResult(diagnostics=diagnostics, symbols=symbols)


class BrokenAnalyzer:
    def analyze(self, source, path, environment):
        raise RuntimeError("analyzer crashed")


class FakeServer:
    """Mock mínimo de HomescriptLanguageServer para testes unitários."""

    def __init__(self, analyzer=None):
        self.document_store = DocumentStore()
        self.analyzer = analyzer or FakeAnalyzer()
        self.validation_enabled = True
        self.publisher = MagicMock()
        self.analysis_executor = SyncExecutor()


def _open(ls, text, uri=URI):
    did_open(
        ls,
        DidOpenTextDocumentParams(
            text_document=TextDocumentItem(uri=uri, language_id="homescript", version=1, text=text)
        ),
    )


def _change(ls, changes, uri=URI, version=2):
    did_change(
        ls,
        DidChangeTextDocumentParams(
            text_document=VersionedTextDocumentIdentifier(uri=uri, version=version),
            content_changes=changes,
        ),
    )


def _range(sl, sc, el, ec):
    return Range(start=Position(line=sl, character=sc), end=Position(line=el, character=ec))


def _published(ls):
    """Lista de (uri, revision, diagnostics) enviados ao publisher."""
    return [call.args for call in ls.publisher.dispatch.call_args_list]


# --- didOpen ---


def test_open_publishes_diagnostics():
    ls = FakeServer()
    _open(ls, "let x = error;")

    doc = ls.document_store.get(URI)
    assert doc is not None

    [(uri, revision, diagnostics)] = _published(ls)
    assert uri == URI
    assert revision == doc.revision
    assert len(diagnostics) == 1
    assert diagnostics[0].message == "SyntaxError: unexpected error"
    assert diagnostics[0].range == _range(0, 8, 0, 13)
    assert doc.needs_refresh is False


def test_open_clean_file_publishes_empty_list():
    """Sem resultados do analisador, lista vazia ainda é publicada."""
    ls = FakeServer()
    _open(ls, "let x = 1;")

    [(uri, _, diagnostics)] = _published(ls)
    assert uri == URI
    assert diagnostics == []


def test_open_invalid_uri_is_ignored():
    ls = FakeServer()
    _open(ls, "x", uri="untitled:Untitled-1")

    assert len(ls.document_store) == 0
    ls.publisher.dispatch.assert_not_called()


# --- didChange ---


def test_change_applies_and_revalidates():
    ls = FakeServer()
    _open(ls, "let x = 1;")
    _change(ls, [TextDocumentContentChangeEvent_Type1(range=_range(0, 8, 0, 9), text="error")])

    doc = ls.document_store.get(URI)
    assert doc.content == "let x = error;"
    assert ls.analyzer.sources[-1] == "let x = error;"

    (_, first_rev, _), (_, second_rev, diagnostics) = _published(ls)
    assert second_rev > first_rev
    assert len(diagnostics) == 1


def test_change_clears_previous_diagnostics():
    ls = FakeServer()
    _open(ls, "error")
    _change(ls, [TextDocumentContentChangeEvent_Type2(text="fine")])

    assert _published(ls)[-1][2] == []


def test_change_applied_in_order():
    ls = FakeServer()
    _open(ls, "abc")
    _change(
        ls,
        [
            TextDocumentContentChangeEvent_Type1(range=_range(0, 0, 0, 0), text="XY"),
            TextDocumentContentChangeEvent_Type1(range=_range(0, 2, 0, 3), text="_"),
        ],
    )
    assert ls.document_store.get(URI).content == "XY_bc"


def test_change_unknown_document_is_noop():
    ls = FakeServer()
    _change(ls, [TextDocumentContentChangeEvent_Type2(text="x")], uri="file:///ws/other.hms")

    ls.publisher.dispatch.assert_not_called()
    assert ls.analyzer.sources == []


def test_analyzer_failure_publishes_empty():
    """Falha do analisador vira zero diagnósticos, sem exceção."""
    ls = FakeServer(analyzer=BrokenAnalyzer())
    _open(ls, "error")

    [(_, _, diagnostics)] = _published(ls)
    assert diagnostics == []


def test_validation_disabled_publishes_empty():
    ls = FakeServer()
    ls.validation_enabled = False
    _open(ls, "error")

    [(_, _, diagnostics)] = _published(ls)
    assert diagnostics == []
    assert ls.analyzer.sources == []


def test_refresh_skips_closed_document():
    ls = FakeServer()
    _open(ls, "error")
    doc = ls.document_store.get(URI)
    ls.document_store.close(URI)
    ls.publisher.reset_mock()

    refresh_diagnostics(ls, doc)
    ls.publisher.dispatch.assert_not_called()


# --- didClose ---


def test_close_removes_and_clears():
    ls = FakeServer()
    _open(ls, "error")
    did_close(ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI)))

    assert ls.document_store.get(URI) is None
    assert _published(ls)[-1][2] == []


def test_close_clear_uses_newer_revision():
    ls = FakeServer()
    _open(ls, "error")
    [(_, analyzed_revision, _)] = _published(ls)

    did_close(ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI)))

    uri, clear_revision, diagnostics = _published(ls)[-1]
    assert (uri, diagnostics) == (URI, [])
    assert clear_revision > analyzed_revision
    ls.publisher.forget.assert_called_once_with(URI)


def test_close_during_analysis_ends_with_empty_publish():
    """Análise em andamento quando o documento fecha não republica diagnósticos."""
    sent = []
    ls = FakeServer()
    ls.publisher = DiagnosticsPublisher(lambda uri, diagnostics: sent.append((uri, diagnostics)))
    _open(ls, "error")
    doc = ls.document_store.get(URI)

    class ClosingAnalyzer(FakeAnalyzer):
        def analyze(self, source, path, environment):
            result = super().analyze(source, path, environment)
            did_close(
                ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI))
            )
            return result

    ls.analyzer = ClosingAnalyzer()
    refresh_diagnostics(ls, doc)
    ls.publisher.shutdown()

    assert sent[-1] == (URI, [])
    assert ls.publisher.last_revision(URI) is None


def test_close_unknown_document():
    ls = FakeServer()
    did_close(ls, DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI)))
    ls.publisher.dispatch.assert_not_called()


# --- hover ---


def _hover(ls, line, character, uri=URI):
    return hover(
        ls,
        HoverParams(
            text_document=TextDocumentIdentifier(uri=uri),
            position=Position(line=line, character=character),
        ),
    )


def test_hover_returns_symbol_type():
    ls = FakeServer()
    _open(ls, "let on = lamp;")
    result = _hover(ls, 0, 10)
    assert result.contents.value == "bool"


def test_hover_uses_latest_content():
    ls = FakeServer()
    _open(ls, "let on = 1;")
    assert _hover(ls, 0, 10) is None

    _change(ls, [TextDocumentContentChangeEvent_Type1(range=_range(0, 9, 0, 10), text="lamp")])
    assert _hover(ls, 0, 10).contents.value == "bool"


def test_hover_miss():
    ls = FakeServer()
    _open(ls, "let on = lamp;")
    assert _hover(ls, 0, 0) is None


def test_hover_on_operator_symbol():
    """Símbolos do analisador não precisam começar em identificador."""

    class OperatorAnalyzer:
        def analyze(self, source, path, environment):
            col = source.find("+") + 1
            span = Span(Location(1, col), Location(1, col))
            return AnalysisResult(symbols=[SymbolRecord(span=span, type="num")])

    ls = FakeServer(analyzer=OperatorAnalyzer())
    _open(ls, "a + b")
    assert _hover(ls, 0, 2).contents.value == "num"


def test_hover_unknown_document():
    ls = FakeServer()
    assert _hover(ls, 0, 0) is None


def test_hover_position_past_end():
    ls = FakeServer()
    _open(ls, "lamp")
    assert _hover(ls, 10, 50) is None


# --- completion ---


def test_completion_known_document():
    ls = FakeServer()
    _open(ls, "")
    result = completion(
        ls,
        CompletionParams(
            text_document=TextDocumentIdentifier(uri=URI),
            position=Position(line=0, character=0),
        ),
    )
    assert [item.label for item in result.items][:2] == ["switch", "for"]


def test_completion_unknown_document():
    ls = FakeServer()
    result = completion(
        ls,
        CompletionParams(
            text_document=TextDocumentIdentifier(uri=URI),
            position=Position(line=0, character=0),
        ),
    )
    assert result is None


# --- Configuração ---


@pytest.fixture
def analyzer_module(monkeypatch):
    module = types.ModuleType("configured_analyzer")
    module.Analyzer = FakeAnalyzer
    monkeypatch.setitem(sys.modules, "configured_analyzer", module)
    return module


def test_settings_disable_clears_diagnostics():
    ls = FakeServer()
    _open(ls, "error")
    ls.publisher.reset_mock()

    apply_settings(ls, {"homescript": {"validation": {"enabled": False}}})

    assert ls.validation_enabled is False
    [(_, _, diagnostics)] = _published(ls)
    assert diagnostics == []


def test_settings_disable_clear_outranks_running_analysis():
    """Limpeza por desativação usa revisão nova; análise antiga é descartada."""
    sent = []
    ls = FakeServer()
    ls.publisher = DiagnosticsPublisher(lambda uri, diagnostics: sent.append((uri, diagnostics)))
    _open(ls, "error")
    doc = ls.document_store.get(URI)

    class DisablingAnalyzer(FakeAnalyzer):
        def analyze(self, source, path, environment):
            result = super().analyze(source, path, environment)
            apply_settings(ls, {"homescript": {"validation": {"enabled": False}}})
            return result

    ls.analyzer = DisablingAnalyzer()
    refresh_diagnostics(ls, doc)
    ls.publisher.shutdown()

    assert sent[-1] == (URI, [])


def test_settings_reenable_revalidates():
    ls = FakeServer()
    ls.validation_enabled = False
    _open(ls, "error")
    ls.publisher.reset_mock()

    apply_settings(ls, {"validation": {"enabled": True}})

    assert ls.validation_enabled is True
    [(_, _, diagnostics)] = _published(ls)
    assert len(diagnostics) == 1


def test_settings_unchanged_does_not_revalidate():
    ls = FakeServer()
    _open(ls, "error")
    ls.publisher.reset_mock()

    apply_settings(ls, {"homescript": {}})
    ls.publisher.dispatch.assert_not_called()


def test_settings_load_analyzer(analyzer_module):
    ls = FakeServer(analyzer=NullAnalyzer())
    _open(ls, "error")
    ls.publisher.reset_mock()

    apply_settings(ls, {"homescript": {"analyzer": "configured_analyzer:Analyzer"}})

    assert isinstance(ls.analyzer, FakeAnalyzer)
    [(_, _, diagnostics)] = _published(ls)
    assert len(diagnostics) == 1


def test_settings_bad_analyzer_keeps_current():
    ls = FakeServer()
    current = ls.analyzer
    apply_settings(ls, {"homescript": {"analyzer": "no_such_module_xyz:Analyzer"}})
    assert ls.analyzer is current


def test_did_change_configuration_handler():
    ls = FakeServer()
    did_change_configuration(
        ls,
        DidChangeConfigurationParams(settings={"homescript": {"validation": {"enabled": False}}}),
    )
    assert ls.validation_enabled is False


def test_did_change_configuration_invalid_settings():
    """Configuração em formato inesperado volta aos padrões."""
    ls = FakeServer()
    ls.validation_enabled = False
    did_change_configuration(ls, DidChangeConfigurationParams(settings="garbage"))
    assert ls.validation_enabled is True
