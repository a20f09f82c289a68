"""
document.py - Documento aberto no editor e sincronização incremental

Propósito:
    Mantém o texto vivo de um arquivo Homescript aberto, aplica as mudanças
    de textDocument/didChange em ordem e oferece consultas por posição
    (linha, palavra sob o cursor, janelas antes/depois do cursor).

Componentes principais:
    - Document: texto, cache de linhas e consultas por posição
    - RangeReplace / WholeReplace: as duas formas de mudança
    - changes_from_lsp: eventos lsprotocol → RangeReplace/WholeReplace
    - range_to_offsets: Range LSP → (início, fim) em índices do texto

Notas de implementação:
    - Linhas são separadas apenas por "\\n"; "\\r" fica dentro da linha para
      não deslocar as colunas enviadas pelo editor (arquivos CRLF)
    - Toda atribuição a content limpa o cache de linhas
    - Colunas LSP são unidades UTF-16; convertidas para índices Python
    - Posições fora do texto são limitadas às bordas (clamp):
        linha além da última → fim do texto
        coluna além do fim da linha → fim da linha (antes do "\\n")
        fim antes do início → inserção no início
    - revision cresce a cada lote de mudanças (contador global do processo);
      usado para descartar publicações de diagnósticos antigas
"""

from __future__ import annotations

import itertools
import logging
import re
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from lsprotocol.types import (
    Position,
    Range,
    TextDocumentContentChangeEvent_Type1,
    TextDocumentContentChangeEvent_Type2,
)

from homescript_lsp.uri import normalize_path

logger = logging.getLogger(__name__)

# Caracteres de identificador Homescript
_WORD_CHARS = re.compile(r"\w", re.ASCII)

# Revisões crescem no processo inteiro, inclusive entre reaberturas do mesmo path
_revisions = itertools.count(1)


@dataclass(frozen=True)
class RangeReplace:
    """Substitui o trecho coberto por range."""

    range: Range
    text: str


@dataclass(frozen=True)
class WholeReplace:
    """Substitui o conteúdo inteiro."""

    text: str


ChangeOp = Union[RangeReplace, WholeReplace]


def changes_from_lsp(events: Iterable) -> List[ChangeOp]:
    """Converte content_changes do didChange, mantendo a ordem."""
    changes: List[ChangeOp] = []
    for event in events:
        if isinstance(event, TextDocumentContentChangeEvent_Type1):
            changes.append(RangeReplace(range=event.range, text=event.text))
        elif isinstance(event, TextDocumentContentChangeEvent_Type2):
            changes.append(WholeReplace(text=event.text))
        else:
            raise TypeError(f"Evento de mudança desconhecido: {type(event).__name__}")
    return changes


def _utf16_to_index(line: str, character: int) -> int:
    """Converte coluna em unidades UTF-16 para índice na string (com clamp)."""
    if character <= 0:
        return 0
    units = 0
    for index, ch in enumerate(line):
        if units >= character:
            return index
        units += 2 if ord(ch) > 0xFFFF else 1
    return len(line)


def _position_to_offset(content: str, position: Position) -> int:
    offset = 0
    for _ in range(max(position.line, 0)):
        newline = content.find("\n", offset)
        if newline == -1:
            return len(content)
        offset = newline + 1

    line_end = content.find("\n", offset)
    if line_end == -1:
        line_end = len(content)
    return offset + _utf16_to_index(content[offset:line_end], position.character)


def range_to_offsets(content: str, range_: Range) -> Tuple[int, int]:
    """
    Resolve um Range LSP para índices (início, fim) em content.

    Nunca falha: posições fora do texto são limitadas às bordas, e um fim
    anterior ao início é tratado como inserção no início.
    """
    start = _position_to_offset(content, range_.start)
    end = _position_to_offset(content, range_.end)
    return start, max(start, end)


def word_at(line: str, character: int) -> str:
    """
    Extrai o identificador que contém a coluna character.

    Retorna "" se a coluna está fora da linha ou sobre um caractere que não
    faz parte de identificador.
    """
    if character < 0 or character >= len(line):
        return ""

    if not _WORD_CHARS.match(line[character]):
        return ""

    start = character
    while start > 0 and _WORD_CHARS.match(line[start - 1]):
        start -= 1

    end = character
    while end < len(line) and _WORD_CHARS.match(line[end]):
        end += 1

    return line[start:end]


class Document:
    """
    Arquivo aberto no editor.

    Attributes:
        uri: URI original do editor, devolvida nas notificações
        path: Path canônico (chave do DocumentStore), calculado uma vez
        needs_refresh: Diagnósticos desatualizados em relação a content
        revision: Contador monotônico de lotes de mudança aplicados
        lock: Protege mudanças de content e a cópia lida pela análise
    """

    def __init__(self, uri: str, text: str, path: Optional[str] = None):
        self.uri = uri
        self.path = path if path is not None else normalize_path(uri)
        self._content = text
        self._lines: Optional[List[str]] = None
        self.needs_refresh = True
        self.revision = next(_revisions)
        self.lock = threading.RLock()

    @property
    def content(self) -> str:
        return self._content

    @content.setter
    def content(self, text: str) -> None:
        self._content = text
        self._lines = None
        self.needs_refresh = True

    def apply_changes(self, changes: Iterable[ChangeOp]) -> None:
        """
        Aplica mudanças do didChange estritamente na ordem recebida.

        Cada RangeReplace é resolvido contra o conteúdo produzido pela
        mudança anterior.
        """
        applied = 0
        for change in changes:
            if isinstance(change, RangeReplace):
                start, end = range_to_offsets(self._content, change.range)
                self.content = self._content[:start] + change.text + self._content[end:]
            elif isinstance(change, WholeReplace):
                self.content = change.text
            else:
                raise TypeError(f"Mudança desconhecida: {type(change).__name__}")
            applied += 1

        self.bump_revision()
        logger.debug(f"{applied} mudanças aplicadas em {self.path} (revisão {self.revision})")

    def bump_revision(self) -> int:
        """Marca um novo estado publicável (mudança, limpeza de diagnósticos)."""
        self.revision = next(_revisions)
        return self.revision

    def get_lines(self) -> List[str]:
        if self._lines is None:
            # "\r" é mantido de propósito
            self._lines = self._content.split("\n")
        return self._lines

    def line_at(self, index: int) -> Optional[str]:
        """Retorna a linha index (0-based) ou None se não existe."""
        lines = self.get_lines()
        if index < 0 or index >= len(lines):
            return None
        return lines[index]

    def content_at_range(self, range_: Range) -> str:
        start, end = range_to_offsets(self._content, range_)
        return self._content[start:end]

    def word_at(self, position: Position) -> str:
        line = self.line_at(position.line)
        if line is None:
            return ""
        return word_at(line, _utf16_to_index(line, position.character))

    def look_behind(self, position: Position, length: int) -> str:
        """Até length caracteres antes do cursor, na mesma linha."""
        line = self.line_at(position.line)
        if line is None:
            return ""
        index = _utf16_to_index(line, position.character)
        return line[max(0, index - length):index]

    def look_forward(self, position: Position, length: int) -> str:
        """Até length caracteres a partir do cursor, na mesma linha."""
        line = self.line_at(position.line)
        if line is None:
            return ""
        index = _utf16_to_index(line, position.character)
        return line[index:index + max(0, length)]

    def __repr__(self) -> str:
        return f"Document(uri={self.uri!r}, revision={self.revision})"
