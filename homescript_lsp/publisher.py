"""
publisher.py - Publicação assíncrona e ordenada de diagnósticos

Propósito:
    Envia textDocument/publishDiagnostics fora do caminho crítico dos
    handlers, sem nunca deixar um resultado antigo sobrescrever um novo.

Componentes principais:
    - DiagnosticsPublisher: fila FIFO (um worker) + revisão por documento

Notas de implementação:
    - dispatch() retorna imediatamente (Future); o envio roda no worker
    - Cada publicação carrega a revision do Document analisado; revisões
      menores que a última publicada para a URI são descartadas
    - forget() remove a revisão de uma URI fechada, na ordem da fila
    - Falhas de envio são registradas no log, nunca propagadas
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from lsprotocol.types import Diagnostic

logger = logging.getLogger(__name__)

SendFunc = Callable[[str, List[Diagnostic]], None]


class DiagnosticsPublisher:
    """Publica diagnósticos em ordem, descartando revisões antigas."""

    def __init__(self, send: SendFunc, executor: Optional[ThreadPoolExecutor] = None):
        self._send = send
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="homescript-publish"
        )
        self._revisions: dict[str, int] = {}
        self._lock = threading.Lock()

    def dispatch(self, uri: str, revision: int, diagnostics: List[Diagnostic]) -> Future:
        """Agenda a publicação e retorna sem esperar o envio."""
        return self._executor.submit(self._publish, uri, revision, list(diagnostics))

    def _publish(self, uri: str, revision: int, diagnostics: List[Diagnostic]) -> bool:
        with self._lock:
            last = self._revisions.get(uri)
            if last is not None and revision < last:
                logger.debug(f"Publicação descartada para {uri}: revisão {revision} < {last}")
                return False
            self._revisions[uri] = revision

        try:
            self._send(uri, diagnostics)
        except Exception as e:
            logger.error(f"Failed to publish diagnostics for {uri}: {e}", exc_info=True)
            return False

        logger.debug(f"Published {len(diagnostics)} diagnostics for {uri} (revisão {revision})")
        return True

    def last_revision(self, uri: str) -> Optional[int]:
        with self._lock:
            return self._revisions.get(uri)

    def forget(self, uri: str) -> Future:
        """
        Descarta a revisão registrada para uri.

        Entra na mesma fila, então roda depois das publicações já agendadas
        (por exemplo, a limpeza do didClose).
        """
        return self._executor.submit(self._forget, uri)

    def _forget(self, uri: str) -> None:
        with self._lock:
            self._revisions.pop(uri, None)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
