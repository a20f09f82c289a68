"""
server.py - Servidor LSP principal para Homescript usando pygls

Propósito:
    Recebe as notificações de sincronização do editor, mantém os documentos
    abertos, reexecuta o analisador a cada mudança e publica diagnósticos.

Componentes principais:
    - HomescriptLanguageServer: Servidor com DocumentStore, analisador e
      publicador de diagnósticos
    - refresh_diagnostics: Analisa um documento e agenda a publicação
    - Event handlers: did_open, did_change, did_close, hover, completion,
      did_change_configuration

Dependências críticas:
    - pygls: Framework LSP
    - homescript_lsp.analyzer: Interface com o analisador externo

Exemplo de uso:
    python -m homescript_lsp.server

Notas de implementação:
    - didOpen/didChange rodam no loop do pygls, na ordem de chegada; a
      mudança é aplicada sob doc.lock
    - A análise roda em analysis_executor; documentos diferentes são
      analisados em paralelo
    - Publicação de diagnósticos é fire-and-forget (DiagnosticsPublisher),
      com revisão por documento para descartar resultados antigos
    - Notificações para documentos desconhecidos são ignoradas
    - Handlers nunca deixam exceções escaparem (nunca crasha)
    - Configuração: homescript.validation.enabled, homescript.analyzer
"""

from __future__ import annotations

import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from importlib import metadata

from lsprotocol.types import (
    INITIALIZE,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_HOVER,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    CompletionOptions,
    CompletionParams,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    HoverParams,
    InitializeParams,
    TextDocumentSyncKind,
)
from pygls.server import LanguageServer

from homescript_lsp import __version__
from homescript_lsp.analyzer import Analyzer, NullAnalyzer, load_analyzer, run_analysis
from homescript_lsp.completion import compute_completions
from homescript_lsp.converters import build_diagnostics
from homescript_lsp.document import Document, changes_from_lsp
from homescript_lsp.hover import compute_hover
from homescript_lsp.publisher import DiagnosticsPublisher
from homescript_lsp.store import DocumentStore
from homescript_lsp.uri import InvalidURI

# Configuração de logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class HomescriptLanguageServer(LanguageServer):
    """
    Servidor LSP especializado para Homescript.

    Attributes:
        document_store: Documentos abertos, por path canônico
        analyzer: Analisador Homescript em uso (NullAnalyzer até ser configurado)
        validation_enabled: Flag de controle para habilitar/desabilitar diagnósticos
        publisher: Publicação ordenada e assíncrona de diagnósticos
        analysis_executor: Pool onde as análises de didOpen/didChange rodam
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.document_store: DocumentStore = DocumentStore()
        self.analyzer: Analyzer = NullAnalyzer()
        self.validation_enabled: bool = True
        self.publisher = DiagnosticsPublisher(self.publish_diagnostics)
        self.analysis_executor = ThreadPoolExecutor(thread_name_prefix="homescript-analysis")


# Instância global do servidor
server = HomescriptLanguageServer(
    "homescript-language-server",
    f"v{__version__}",
    text_document_sync_kind=TextDocumentSyncKind.Incremental,
)


def refresh_diagnostics(ls: HomescriptLanguageServer, doc: Document) -> None:
    """
    Analisa o conteúdo atual do documento e agenda a publicação.

    Fluxo:
        1. Copia content e revision sob doc.lock
        2. Executa o analisador no texto completo (falhas → resultado vazio)
        3. Converte para Diagnostic (lista vazia também é publicada, para
           limpar diagnósticos antigos no editor)
        4. Agenda a publicação com a revisão copiada

    Se a validação está desabilitada, publica lista vazia com revisão nova,
    para que análises ainda em andamento não a sobrescrevam.

    A verificação "documento ainda aberto" e o agendamento acontecem sob
    doc.lock, a mesma seção em que did_close agenda a limpeza.
    """
    if not ls.validation_enabled:
        logger.debug(f"Validação desabilitada, pulando: {doc.uri}")
        with doc.lock:
            if ls.document_store.get(doc.path) is doc:
                ls.publisher.dispatch(doc.uri, doc.bump_revision(), [])
        return

    with doc.lock:
        source = doc.content
        revision = doc.revision

    try:
        result = run_analysis(ls.analyzer, source, doc.path)
        diagnostics = build_diagnostics(result.diagnostics)
    except Exception as e:
        logger.error(f"Erro ao validar {doc.uri}: {e}", exc_info=True)
        diagnostics = []

    with doc.lock:
        if ls.document_store.get(doc.path) is not doc:
            logger.debug(f"Documento fechado durante a análise: {doc.uri}")
            return
        if doc.revision == revision:
            doc.needs_refresh = False
        ls.publisher.dispatch(doc.uri, revision, diagnostics)

    logger.info(f"Validação completa: {doc.uri} - {len(diagnostics)} diagnósticos")


def schedule_refresh(ls: HomescriptLanguageServer, doc: Document) -> None:
    """Agenda refresh_diagnostics fora do loop do servidor."""
    ls.analysis_executor.submit(refresh_diagnostics, ls, doc)


def _revalidate_all(ls: HomescriptLanguageServer) -> None:
    for doc in ls.document_store.documents():
        try:
            schedule_refresh(ls, doc)
        except Exception as e:
            logger.error(f"Erro ao revalidar {doc.uri}: {e}", exc_info=True)


def apply_settings(ls: HomescriptLanguageServer, settings) -> None:
    """
    Aplica a seção "homescript" da configuração do editor.

    settings pode vir como {'homescript': {...}} ou já ser a seção.
    Chaves ausentes mantêm os padrões (validation.enabled=True).
    """
    old_validation_enabled = ls.validation_enabled

    config = {}
    if isinstance(settings, dict):
        config = settings.get("homescript", settings)
        if not isinstance(config, dict):
            config = {}

    validation_config = config.get("validation", {})
    if isinstance(validation_config, dict):
        ls.validation_enabled = bool(validation_config.get("enabled", True))
    else:
        ls.validation_enabled = True

    reference = config.get("analyzer")
    analyzer_changed = False
    if isinstance(reference, str) and reference:
        try:
            ls.analyzer = load_analyzer(reference)
            analyzer_changed = True
            logger.info(f"Analisador carregado: {reference}")
        except (ImportError, ValueError) as e:
            logger.error(f"Falha ao carregar analisador {reference}: {e}", exc_info=True)

    logger.info(f"Configuração atualizada: validation.enabled = {ls.validation_enabled}")

    if old_validation_enabled and not ls.validation_enabled:
        logger.info("Validação desativada, limpando diagnósticos")
    elif not old_validation_enabled and ls.validation_enabled:
        logger.info("Validação reativada, revalidando documentos abertos")
    elif not analyzer_changed:
        return

    _revalidate_all(ls)


@server.feature(INITIALIZE)
def initialize(ls: HomescriptLanguageServer, params: InitializeParams) -> None:
    """Lê a seção "homescript" de initializationOptions, se houver."""
    options = params.initialization_options
    if options:
        try:
            apply_settings(ls, options)
        except Exception as e:
            logger.error(f"Erro ao processar initializationOptions: {e}", exc_info=True)


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: HomescriptLanguageServer, params: DidOpenTextDocumentParams) -> None:
    """
    Handler para abertura de documento.

    Registra o documento e valida imediatamente.
    """
    uri = params.text_document.uri
    logger.info(f"Documento aberto: {uri}")
    try:
        doc = ls.document_store.open(uri, params.text_document.text)
    except InvalidURI as e:
        logger.error(f"URI não suportada: {e}")
        return
    schedule_refresh(ls, doc)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: HomescriptLanguageServer, params: DidChangeTextDocumentParams) -> None:
    """
    Handler para mudanças no documento.

    As mudanças são aplicadas na ordem recebida; documento desconhecido é
    ignorado.
    """
    uri = params.text_document.uri
    doc = ls.document_store.get(uri)
    if doc is None:
        logger.debug(f"didChange para documento não aberto: {uri}")
        return

    logger.info(f"Documento modificado: {uri}")
    try:
        changes = changes_from_lsp(params.content_changes)
        with doc.lock:
            doc.apply_changes(changes)
    except Exception as e:
        logger.error(f"Erro ao aplicar mudanças em {uri}: {e}", exc_info=True)
        return
    schedule_refresh(ls, doc)


@server.feature(TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: HomescriptLanguageServer, params: DidCloseTextDocumentParams) -> None:
    """
    Handler para fechamento de documento.

    Remove o documento e limpa seus diagnósticos. A limpeza usa revisão
    nova e é agendada sob doc.lock: análises que ainda não publicaram
    veem o documento fora do store e desistem.
    """
    uri = params.text_document.uri
    logger.info(f"Documento fechado: {uri}")

    doc = ls.document_store.close(uri)
    if doc is None:
        return
    with doc.lock:
        ls.publisher.dispatch(doc.uri, doc.bump_revision(), [])
        ls.publisher.forget(doc.uri)


@server.thread()
@server.feature(TEXT_DOCUMENT_HOVER)
def hover(ls: HomescriptLanguageServer, params: HoverParams):
    """
    Retorna o tipo do símbolo sob o cursor.

    Reanalisa o conteúdo atual e procura o símbolo na tabela do analisador.
    """
    doc = ls.document_store.get(params.text_document.uri)
    if doc is None:
        return None

    with doc.lock:
        source = doc.content

    result = run_analysis(ls.analyzer, source, doc.path)
    return compute_hover(params.position, result.symbols)


@server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions())
def completion(ls: HomescriptLanguageServer, params: CompletionParams):
    """Retorna a lista fixa de palavras-chave e funções."""
    if ls.document_store.get(params.text_document.uri) is None:
        return None
    return compute_completions()


@server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
def did_change_configuration(
    ls: HomescriptLanguageServer, params: DidChangeConfigurationParams
) -> None:
    """
    Handler para mudanças na configuração do workspace.

    Nota: A configuração vem diretamente no params.settings quando o cliente
    sincroniza via configurationSection: 'homescript' no LanguageClientOptions.
    """
    try:
        apply_settings(ls, params.settings)
    except Exception as e:
        logger.error(f"Erro ao processar mudança de configuração: {e}", exc_info=True)


def main() -> None:
    """
    Ponto de entrada principal do servidor.

    Inicia servidor LSP em modo STDIO.
    """
    logger.info("Iniciando Homescript Language Server...")
    logger.info("Python executable: %s", sys.executable)
    try:
        logger.info("homescript-lsp package: %s", metadata.version("homescript-lsp"))
    except metadata.PackageNotFoundError:
        logger.info("homescript-lsp package: %s (não instalado)", __version__)
    server.start_io()


if __name__ == "__main__":
    main()
