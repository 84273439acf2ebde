#--------------------------------------------------------------------------
# modulos/logger.py - v2.0 COLETOR DE LOGS POR EXECUÇÃO
#--------------------------------------------------------------------------
import logging
from logging.handlers import RotatingFileHandler
import os
import traceback
import sys
from typing import Callable, List, Optional

# --- Configuração do Caminho Absoluto ---
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_DIR = os.path.dirname(SCRIPT_DIR)
LOG_FILE_PATH = os.getenv("NFSE_LOG_FILE") or os.path.join(PROJECT_DIR, "robo_nfse_log.txt")

# --- Configuração do Logger ---
log_formatter = logging.Formatter('%(asctime)s | %(levelname)-8s | %(message)s')

os.makedirs(os.path.dirname(os.path.abspath(LOG_FILE_PATH)), exist_ok=True)
log_handler_file = RotatingFileHandler(LOG_FILE_PATH, maxBytes=1024 * 1024 * 5, backupCount=2, encoding='utf-8')
log_handler_file.setFormatter(log_formatter)

logger = logging.getLogger("RoboNFSeLogger")
logger.setLevel(logging.INFO)

if not logger.handlers:
    logger.addHandler(log_handler_file)

def log_info(message):
    """Regista uma mensagem informativa."""
    logger.info(message)

def log_error(message: str, exc_info=None):
    """Regista uma mensagem de erro com traceback."""
    if exc_info:
        formatted_traceback = "".join(traceback.format_exception(exc_info[0], exc_info[1], exc_info[2]))
    else:
        formatted_traceback = traceback.format_exc()

    parts = [f"Mensagem: {message}"]

    # Adiciona o traceback apenas se não for um erro "limpo" (sem traceback)
    if "NoneType: None" not in formatted_traceback:
        parts.append("--- TRACEBACK ---")
        parts.append(formatted_traceback)

    full_message = "\n".join(parts)
    logger.error(full_message)

# --- Coletor de linhas de uma execução do robô ---
PREFIXO_INFO = "[BOT]"
PREFIXO_AVISO = "[BOT][AVISO]"
PREFIXO_ERRO = "[BOT][ERRO]"

class ColetorLogs:
    """
    Acumula, em ordem, as linhas de log de uma execução e repassa cada linha
    para um destino opcional (on_log). Toda linha também vai para o log geral.
    """
    def __init__(self, on_log: Optional[Callable[[str], None]] = None):
        self.linhas: List[str] = []
        self.on_log = on_log

    def _registrar(self, linha: str):
        self.linhas.append(linha)
        if self.on_log:
            try:
                self.on_log(linha)
            except Exception as e:
                logger.warning(f"Destino de log da execução falhou: {e}")

    def info(self, mensagem: str):
        linha = f"{PREFIXO_INFO} {mensagem}"
        self._registrar(linha)
        logger.info(linha)

    def aviso(self, mensagem: str):
        linha = f"{PREFIXO_AVISO} {mensagem}"
        self._registrar(linha)
        logger.warning(linha)

    def erro(self, mensagem: str):
        linha = f"{PREFIXO_ERRO} {mensagem}"
        self._registrar(linha)
        logger.error(linha)

    def separador(self):
        linha = "-" * 62
        self._registrar(linha)
        logger.info(linha)

    def repassar(self, linha: str):
        """Recebe uma linha já formatada por outro coletor (sem duplicar no log geral)."""
        self._registrar(linha)

# --- CAPTURA GLOBAL DE EXCEÇÕES ---
def handle_exception(exc_type, exc_value, exc_traceback):
    """
    Função "pega-tudo" que será chamada para qualquer erro não tratado no programa.
    """
    if issubclass(exc_type, KeyboardInterrupt):
        # Se o usuário apertou Ctrl+C, não trata como um erro.
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    log_error("Erro não capturado encontrado!", exc_info=(exc_type, exc_value, exc_traceback))

# Substitui o manipulador de exceções padrão do Python pelo nosso.
sys.excepthook = handle_exception
