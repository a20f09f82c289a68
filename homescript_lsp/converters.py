"""
converters.py - Conversão entre tipos do analisador Homescript e LSP

Propósito:
    Converter diagnósticos do analisador para o tipo Diagnostic do LSP,
    com o mapeamento exato de coordenadas (1-based → 0-based).

Componentes principais:
    - convert_severity: Severity → DiagnosticSeverity
    - convert_span: Span → Range
    - build_diagnostic: DiagnosticRecord → Diagnostic
    - build_diagnostics: lista de DiagnosticRecord → List[Diagnostic]

Exemplo de uso:
    from homescript_lsp.converters import build_diagnostics

    diagnostics = build_diagnostics(result.diagnostics)

Notas de implementação:
    - Linhas e coluna inicial perdem 1; a coluna final é mantida como veio
      do analisador, o que torna o fim exclusivo (range semiaberto do LSP)
    - Lista vazia de registros → lista vazia de Diagnostic, que também deve
      ser publicada para limpar diagnósticos antigos no editor
    - source identifica o analisador e a versão: "Homescript@<versão>"
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from lsprotocol.types import (
    Diagnostic,
    DiagnosticSeverity,
    Position,
    Range,
)

from homescript_lsp import __version__
from homescript_lsp.analyzer import DiagnosticRecord, Severity, Span

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = f"Homescript@{__version__}"


def convert_severity(severity: Severity) -> Optional[DiagnosticSeverity]:
    """
    Mapeia Severity do analisador para DiagnosticSeverity do LSP.

    Mapeamento:
        ERROR   → DiagnosticSeverity.Error (1)
        WARNING → DiagnosticSeverity.Warning (2)
        INFO    → DiagnosticSeverity.Information (3)

    Qualquer outro valor não deveria ocorrer; vira None (sem severidade).
    """
    mapping = {
        Severity.ERROR: DiagnosticSeverity.Error,
        Severity.WARNING: DiagnosticSeverity.Warning,
        Severity.INFO: DiagnosticSeverity.Information,
    }
    converted = mapping.get(severity)
    if converted is None:
        logger.warning(f"Severidade desconhecida do analisador: {severity!r}")
    return converted


def convert_span(span: Span) -> Range:
    """
    Converte Span (1-based) para Range LSP (0-based).

    Ex: start=(3, 5), end=(3, 9) → start=(2, 4), end=(2, 9)
    """
    return Range(
        start=Position(line=span.start.line - 1, character=span.start.column - 1),
        end=Position(line=span.end.line - 1, character=span.end.column),
    )


def build_diagnostic(record: DiagnosticRecord) -> Diagnostic:
    return Diagnostic(
        range=convert_span(record.span),
        severity=convert_severity(record.severity),
        source=DIAGNOSTIC_SOURCE,
        message=f"{record.kind}: {record.message}",
    )


def build_diagnostics(records: Iterable[DiagnosticRecord]) -> List[Diagnostic]:
    """
    Converte todos os registros do analisador, mantendo a ordem.

    Nota:
        - Um registro mal formado vira um diagnostic genérico na linha 0
          em vez de derrubar a publicação inteira
    """
    diagnostics: List[Diagnostic] = []

    for record in records:
        try:
            diagnostics.append(build_diagnostic(record))
        except Exception as e:
            logger.warning(f"Registro de diagnóstico inválido: {record!r}", exc_info=True)
            fallback = Diagnostic(
                range=Range(
                    start=Position(line=0, character=0),
                    end=Position(line=0, character=1),
                ),
                severity=DiagnosticSeverity.Error,
                source="homescript-lsp",
                message=f"Erro ao processar diagnóstico: {str(e)}",
            )
            diagnostics.append(fallback)

    return diagnostics
