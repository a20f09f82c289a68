"""
uri.py - Normalização de URIs do editor para paths do sistema de arquivos

Propósito:
    Converter a URI enviada pelo editor (file://...) no path canônico usado
    como chave do DocumentStore e entregue ao analisador.

Componentes principais:
    - normalize_path: URI ou path → path POSIX canônico
    - InvalidURI: erro base (scheme ou plataforma não suportados)

Notas de implementação:
    - Plataformas sem paths POSIX (Windows) falham sempre, antes de
      qualquer outra verificação
    - %5C (barra invertida codificada) vira "/" antes do parse
    - Apenas scheme "file" é aceito; o path da URI é decodificado (%20 → " ")
    - Path absoluto sem scheme é devolvido intacto (já normalizado), o que
      torna a normalização idempotente mesmo com "%" literal no nome
    - O path não é resolvido (symlinks) nem normalizado em caixa
"""

from __future__ import annotations

import sys
from urllib.parse import unquote, urlparse


class InvalidURI(ValueError):
    """URI não pode ser convertida em path."""


class UnsupportedScheme(InvalidURI):
    pass


class UnsupportedPlatform(InvalidURI):
    pass


def _is_posix_platform() -> bool:
    return not sys.platform.startswith("win")


def normalize_path(uri_or_path: str) -> str:
    """
    Converte URI file:// (ou path já normalizado) em path canônico.

    Raises:
        UnsupportedPlatform: plataforma sem paths POSIX absolutos
        UnsupportedScheme: scheme diferente de "file", ou path relativo
    """
    if not _is_posix_platform():
        raise UnsupportedPlatform(f"Plataforma não suportada: {sys.platform}")

    if uri_or_path.startswith("/"):
        return uri_or_path

    parsed = urlparse(uri_or_path.replace("%5C", "/"))
    if parsed.scheme != "file":
        raise UnsupportedScheme(f"URI não é file://: {uri_or_path}")

    return unquote(parsed.path)
