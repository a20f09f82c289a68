"""
store.py - Documentos abertos indexados por path canônico

Propósito:
    Único estado mutável compartilhado do servidor: mapeia o path
    normalizado de cada arquivo aberto para seu Document.

Componentes principais:
    - DocumentStore: open / get / close protegidos por lock

Notas de implementação:
    - open normaliza a URI; se falhar, nenhum Document é criado
    - get nunca levanta exceção: documento ausente (ou URI inválida)
      retorna None e o chamador ignora a notificação
    - Reabrir o mesmo path substitui o Document anterior
    - Não há criação implícita em get
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from homescript_lsp.document import Document
from homescript_lsp.uri import InvalidURI, normalize_path

logger = logging.getLogger(__name__)


class DocumentStore:
    """Documentos abertos no editor, por path."""

    def __init__(self):
        self._documents: dict[str, Document] = {}
        self._lock = threading.Lock()

    def open(self, uri: str, text: str) -> Document:
        """
        Registra um documento aberto.

        Raises:
            InvalidURI: se a URI não pode ser normalizada
        """
        path = normalize_path(uri)
        doc = Document(uri, text, path=path)
        with self._lock:
            replaced = path in self._documents
            self._documents[path] = doc
        if replaced:
            logger.info(f"Documento reaberto: {path}")
        else:
            logger.debug(f"Documento registrado: {path}")
        return doc

    def get(self, uri_or_path: str) -> Optional[Document]:
        """Retorna o Document aberto ou None."""
        try:
            path = normalize_path(uri_or_path)
        except InvalidURI:
            logger.debug(f"URI ignorada na busca: {uri_or_path}")
            return None
        with self._lock:
            return self._documents.get(path)

    def close(self, uri_or_path: str) -> Optional[Document]:
        """Remove o documento; retorna o removido ou None."""
        try:
            path = normalize_path(uri_or_path)
        except InvalidURI:
            return None
        with self._lock:
            doc = self._documents.pop(path, None)
        if doc:
            logger.debug(f"Documento removido: {path}")
        return doc

    def documents(self) -> List[Document]:
        """Cópia da lista de documentos abertos."""
        with self._lock:
            return list(self._documents.values())

    def __contains__(self, uri_or_path: str) -> bool:
        return self.get(uri_or_path) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)
