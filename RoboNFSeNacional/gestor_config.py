#--------------------------------------------------------------------------
# gestor_config.py - Configurações Globais (app_settings.json + variáveis de ambiente)
#--------------------------------------------------------------------------
import json
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from modulos.logger import log_error
from modulos.modelos import Credenciais

load_dotenv()

# --- Configuração do Caminho Absoluto ---
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
SETTINGS_FILE = os.path.join(SCRIPT_DIR, "app_settings.json")

DEFAULTS = {
    # Pasta de saída padrão para os arquivos baixados pelo robô
    "pasta_saida_padrao": "downloads",
}

URL_LOGIN_PADRAO = "https://www.nfse.gov.br/EmissorNacional/Login?ReturnUrl=%2fEmissorNacional"
URL_EMITIDAS_PADRAO = "https://www.nfse.gov.br/EmissorNacional/Notas/Emitidas"
URL_RECEBIDAS_PADRAO = "https://www.nfse.gov.br/EmissorNacional/Notas/Recebidas"

def load() -> dict:
    """Carrega as configurações do ficheiro JSON. Se não existir, usa os valores padrão."""
    if not os.path.exists(SETTINGS_FILE):
        return DEFAULTS.copy()

    try:
        with open(SETTINGS_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)

        settings = DEFAULTS.copy()
        settings.update(data)
        return settings
    except (json.JSONDecodeError, IOError) as e:
        log_error(f"Erro ao ler as configurações ({SETTINGS_FILE}): {e}")
        return DEFAULTS.copy()

# --- Variáveis de ambiente (lidas a cada chamada) ---

def _env_bool(nome: str, padrao: bool = False) -> bool:
    valor = os.getenv(nome)
    if valor is None or valor.strip() == "":
        return padrao
    return valor.strip().lower() in ("1", "true", "sim", "yes")

def valor_flag_portal() -> str:
    return os.getenv("NFSE_USE_PORTAL") or "não definido"

def portal_habilitado() -> bool:
    """NFSE_USE_PORTAL=true liga o robô real; qualquer outro valor mantém a simulação."""
    return os.getenv("NFSE_USE_PORTAL", "").strip().lower() == "true"

def login_estrito() -> bool:
    return _env_bool("NFSE_LOGIN_ESTRITO")

def headless() -> bool:
    return _env_bool("NFSE_HEADLESS", sys.platform.startswith("linux"))

def credenciais_padrao() -> Optional[Credenciais]:
    login = os.getenv("NFSE_USER")
    senha = os.getenv("NFSE_PASSWORD")
    if not login or not senha:
        return None
    return Credenciais(login=login, senha=senha)

def url_login() -> str:
    return os.getenv("NFSE_LOGIN_URL") or URL_LOGIN_PADRAO

def url_notas(tipo_nota: str) -> str:
    if tipo_nota == "recebidas":
        return os.getenv("NFSE_RECEBIDAS_URL") or URL_RECEBIDAS_PADRAO
    return os.getenv("NFSE_EMITIDAS_URL") or URL_EMITIDAS_PADRAO

def timeout_ms(nome: str, padrao: int) -> int:
    try:
        return int(os.getenv(nome, str(padrao)))
    except ValueError:
        return padrao

def pasta_saida_padrao() -> str:
    return load().get("pasta_saida_padrao") or "downloads"
