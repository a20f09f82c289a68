"""
analyzer.py - Contrato com o analisador Homescript externo

Propósito:
    Define os tipos que o analisador devolve (diagnósticos e tabela de
    símbolos) e isola o servidor de falhas do analisador.

Componentes principais:
    - Severity, Location, Span: tipos do analisador (1-based)
    - DiagnosticRecord, SymbolRecord, AnalysisResult: resultado da análise
    - Analyzer: protocolo analyze(source, path, environment)
    - load_analyzer: carrega analisador a partir de "modulo:atributo"
    - run_analysis: executa a análise e converte falhas em resultado vazio

Notas de implementação:
    - O analisador em si (lexer, parser, type-checker) é externo
    - Linhas e colunas do analisador começam em 1
    - Cada análise recebe o texto completo e um ambiente inicial vazio
    - Qualquer exceção do analisador vira "zero diagnósticos, zero
      símbolos" para não bloquear a edição
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Location:
    line: int
    column: int


@dataclass(frozen=True)
class Span:
    start: Location
    end: Location


@dataclass
class DiagnosticRecord:
    """Erro, aviso ou informação reportado pelo analisador."""

    severity: Severity
    span: Span
    kind: str
    message: str


@dataclass
class SymbolRecord:
    """Símbolo com o tipo inferido (texto) e seu span."""

    span: Span
    type: str


@dataclass
class AnalysisResult:
    diagnostics: List[DiagnosticRecord] = field(default_factory=list)
    symbols: List[SymbolRecord] = field(default_factory=list)


class Analyzer(Protocol):
    def analyze(self, source: str, path: str, environment: dict) -> AnalysisResult:
        ...


class NullAnalyzer:
    """Analisador padrão quando nenhum foi configurado: nunca reporta nada."""

    _warned = False

    def analyze(self, source: str, path: str, environment: dict) -> AnalysisResult:
        if not NullAnalyzer._warned:
            NullAnalyzer._warned = True
            logger.warning(
                "Nenhum analisador configurado (homescript.analyzer); "
                "diagnósticos e hover ficarão vazios"
            )
        return AnalysisResult()


class _CallableAnalyzer:
    """Adapta uma função analyze(source, path, environment) ao protocolo."""

    def __init__(self, func: Callable[[str, str, dict], AnalysisResult]):
        self._func = func

    def analyze(self, source: str, path: str, environment: dict) -> AnalysisResult:
        return self._func(source, path, environment)

    def __repr__(self) -> str:
        return f"_CallableAnalyzer({self._func!r})"


def load_analyzer(reference: Optional[str]) -> Analyzer:
    """
    Carrega o analisador a partir de "pacote.modulo:atributo".

    O atributo pode ser um objeto com analyze(), uma classe (instanciada
    sem argumentos) ou uma função com a mesma assinatura de analyze().

    Raises:
        ImportError: módulo ou atributo não encontrado
        ValueError: referência mal formada
    """
    if not reference:
        return NullAnalyzer()

    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Referência de analisador inválida: {reference!r} (use modulo:atributo)")

    module = importlib.import_module(module_name)
    try:
        target = getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"{module_name} não define {attr}") from e

    if isinstance(target, type):
        target = target()
    if hasattr(target, "analyze"):
        return target
    if callable(target):
        return _CallableAnalyzer(target)
    raise ValueError(f"{reference} não é um analisador")


def run_analysis(analyzer: Union[Analyzer, None], source: str, path: str) -> AnalysisResult:
    """
    Executa a análise completa do texto.

    Falhas do analisador são registradas no log e devolvidas como
    resultado vazio.
    """
    if analyzer is None:
        return AnalysisResult()
    try:
        result = analyzer.analyze(source, path, {})
    except Exception as e:
        logger.error(f"Analisador falhou para {path}: {e}", exc_info=True)
        return AnalysisResult()

    if result is None:
        return AnalysisResult()
    return result
