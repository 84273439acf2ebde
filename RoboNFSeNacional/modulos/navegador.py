#--------------------------------------------------------------------------
# modulos/navegador.py - Sessão do Chromium, seletores alternativos e espera de eventos
#--------------------------------------------------------------------------
import sys
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Sequence

from playwright.sync_api import sync_playwright, Error as PWError, TimeoutError as PWTimeoutError

from modulos.logger import log_info

ARGS_LINUX = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

POLL_INTERVAL_S = 0.2


class ErroAcao(Exception):
    """A própria ação (clique) falhou enquanto o evento era aguardado."""


# =========================
# Sessão do navegador
# =========================

@contextmanager
def sessao_navegador(headless: bool = True, slow_mo: int = 150) -> Iterator[Any]:
    """
    Abre o Chromium com downloads habilitados e entrega uma página.
    O navegador é sempre fechado na saída, com ou sem erro.
    """
    with sync_playwright() as p:
        navegador = p.chromium.launch(
            headless=headless,
            slow_mo=slow_mo,
            args=ARGS_LINUX if sys.platform.startswith("linux") else [],
        )
        try:
            contexto = navegador.new_context(accept_downloads=True)
            yield contexto.new_page()
        finally:
            navegador.close()
            log_info("Navegador fechado.")

# =========================
# Seletores alternativos
# =========================

def _consultar(raiz, seletor: str):
    try:
        return raiz.query_selector(seletor)
    except PWError:
        return None

def localizar(raiz, seletores: Sequence[str], timeout_ms: int = 0):
    """
    Percorre os seletores na ordem e devolve o primeiro elemento encontrado.
    Com timeout_ms > 0 repete a varredura até o prazo. None se nada aparecer.
    """
    fim = time.time() + timeout_ms / 1000
    while True:
        for seletor in seletores:
            elemento = _consultar(raiz, seletor)
            if elemento is not None:
                return elemento
        if time.time() >= fim:
            return None
        time.sleep(POLL_INTERVAL_S)

# =========================
# Espera de eventos
# =========================

def aguardar_evento(expectativa, acao: Callable[[], Any]) -> Optional[Any]:
    """
    Dispara a ação enquanto espera o evento (download, navegação...).
    Devolve o valor do evento, ou None se o prazo acabar antes.
    Erro do Playwright na própria ação vira ErroAcao.
    """
    try:
        with expectativa as info:
            try:
                acao()
            except PWError as e:
                raise ErroAcao(str(e)) from e
        return info.value
    except PWTimeoutError:
        return None
