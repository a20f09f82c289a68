"""
homescript_lsp - Language Server Protocol para Homescript

Propósito:
    Servidor LSP que mantém os arquivos Homescript abertos sincronizados
    com o editor e publica diagnósticos e hover a partir do analisador.

Componentes principais:
    - server: Servidor principal usando pygls
    - document / store: Documentos abertos e sincronização incremental
    - converters: Conversão DiagnosticRecord → LSP Diagnostic
    - hover: Tipo do símbolo sob o cursor
    - analyzer: Contrato com o analisador externo

Dependências críticas:
    - pygls: Framework LSP
    - lsprotocol: Tipos do protocolo

Exemplo de uso:
    homescript-lsp

Notas de implementação:
    - Comunica via STDIO com o editor
    - Sincronização incremental (TextDocumentSyncKind.Incremental)
    - Análise completa do texto a cada mudança
"""
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import re


def _read_version_from_pyproject() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    try:
        text = pyproject.read_text(encoding="utf-8")
    except OSError:
        return "0.0.0"
    match = re.search(r'(?m)^version = "([^"]+)"\s*$', text)
    return match.group(1) if match else "0.0.0"


try:
    __version__ = _pkg_version("homescript-lsp")
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__all__ = ["server", "document", "store", "converters", "hover", "analyzer"]
