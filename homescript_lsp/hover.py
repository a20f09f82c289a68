"""
hover.py - Tipo do símbolo sob o cursor (textDocument/hover)

Propósito:
    Mostra o tipo inferido pelo analisador para o símbolo sob o cursor.

Notas de implementação:
    - Spans de símbolos são 1-based; a posição do cursor é 0-based
    - Um símbolo cobre o cursor quando a linha inicial OU a linha final do
      span é a linha do cursor, e a coluna do cursor (1-based) está em
      [start.column, end.column], inclusive nas duas pontas
    - Linhas intermediárias de símbolos multilinha não são consideradas
    - O primeiro símbolo que cobre o cursor vence
    - Nada encontrado → None (ausência de hover é normal)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from lsprotocol.types import Hover, MarkupContent, MarkupKind, Position

from homescript_lsp.analyzer import SymbolRecord

logger = logging.getLogger(__name__)


def symbol_overlaps(symbol: SymbolRecord, position: Position) -> bool:
    line = position.line + 1
    if symbol.span.start.line != line and symbol.span.end.line != line:
        return False

    column = position.character + 1
    return symbol.span.start.column <= column <= symbol.span.end.column


def compute_hover(position: Position, symbols: Iterable[SymbolRecord]) -> Optional[Hover]:
    """
    Computa hover a partir da tabela de símbolos do analisador.

    Args:
        position: Posição do cursor (0-based)
        symbols: Símbolos na ordem reportada pelo analisador

    Returns:
        Hover com o tipo em Markdown, ou None
    """
    for symbol in symbols:
        if symbol_overlaps(symbol, position):
            return Hover(
                contents=MarkupContent(kind=MarkupKind.Markdown, value=str(symbol.type))
            )

    return None
