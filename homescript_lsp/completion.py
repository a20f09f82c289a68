"""
completion.py - Autocomplete de palavras-chave e funções Homescript

Propósito:
    Fornece a lista fixa de sugestões: função switch, snippet de for e as
    palavras-chave de controle de fluxo.

Notas de implementação:
    - A lista não depende da posição nem do conteúdo do documento
    - O snippet de for usa InsertTextFormat.Snippet
"""

from __future__ import annotations

from typing import List

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    InsertTextFormat,
)


def _keyword(label: str, insert_text: str, detail: str) -> CompletionItem:
    return CompletionItem(
        label=label,
        kind=CompletionItemKind.Keyword,
        detail=detail,
        insert_text=insert_text,
    )


def static_items() -> List[CompletionItem]:
    return [
        CompletionItem(
            label="switch",
            kind=CompletionItemKind.Function,
            detail="Switch builtin function",
            insert_text="switch",
        ),
        CompletionItem(
            label="for",
            kind=CompletionItemKind.Snippet,
            detail="For loop",
            insert_text="for i in ${1:0}..${2:upper} {$0}",
            insert_text_format=InsertTextFormat.Snippet,
        ),
        _keyword("return", "return", "Return from function"),
        _keyword("break", "break", "Break in loop"),
        _keyword("continue", "continue;", "Continue in loop"),
    ]


def compute_completions() -> CompletionList:
    return CompletionList(is_incomplete=False, items=static_items())
