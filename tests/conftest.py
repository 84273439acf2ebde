import os
import sys
import tempfile

# Ensure the application modules can be imported from the workspace
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
RP = os.path.join(ROOT, 'RoboNFSeNacional')
sys.path.insert(0, RP)
if not os.path.isdir(RP):
    raise RuntimeError(f"RoboNFSeNacional package path not found: {RP}")

# Log e banco fora do repositório durante os testes
_TMP = tempfile.mkdtemp(prefix="nfse-tests-")
os.environ.setdefault("NFSE_LOG_FILE", os.path.join(_TMP, "robo_nfse_log.txt"))
os.environ.setdefault("NFSE_DB_PATH", os.path.join(_TMP, "nfse.db"))

import pytest

import gestor_db as db


@pytest.fixture(autouse=True)
def ambiente(tmp_path, monkeypatch):
    """Cada teste roda em pasta própria, com banco novo e sem esperas longas."""
    monkeypatch.chdir(tmp_path)
    for nome in ("NFSE_USE_PORTAL", "NFSE_USER", "NFSE_PASSWORD", "NFSE_LOGIN_ESTRITO"):
        monkeypatch.delenv(nome, raising=False)
    monkeypatch.setenv("NFSE_TIMEOUT_CAMPO_MS", "0")
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "dados" / "nfse.db"))
    db.initialize_db()
    yield


@pytest.fixture
def pasta_temp(tmp_path):
    pasta = tmp_path / "navegador-temp"
    pasta.mkdir()
    return pasta


class RegistradorFake:
    def __init__(self, falhar=False):
        self.chamadas = []
        self.falhar = falhar

    def __call__(self, **kwargs):
        self.chamadas.append(kwargs)
        if self.falhar:
            raise RuntimeError("database is locked")
        return len(self.chamadas)


@pytest.fixture
def registrador():
    return RegistradorFake()


@pytest.fixture
def registrador_falho():
    return RegistradorFake(falhar=True)
