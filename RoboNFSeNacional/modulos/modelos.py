"""
Modelos de dados do robô de NFS-e: configuração de uma execução,
arquivos capturados, resultado final e empresas do lote.
"""
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TipoNota(str, Enum):
    EMITIDAS = "emitidas"
    RECEBIDAS = "recebidas"

    @property
    def subpasta(self) -> str:
        return "Entrada" if self is TipoNota.RECEBIDAS else "Saida"

    @property
    def rotulo(self) -> str:
        if self is TipoNota.RECEBIDAS:
            return "Notas Recebidas (Entrada)"
        return "Notas Emitidas (Saída)"


class ModoExecucao(str, Enum):
    MANUAL = "manual"
    LOTE = "lote"


class StatusExecucao(str, Enum):
    SUCESSO = "sucesso"
    PARCIAL = "parcial"
    ERRO = "erro"
    SIMULADO = "simulado"


class Formato(str, Enum):
    XML = "xml"
    PDF = "pdf"


class Credenciais(BaseModel):
    model_config = ConfigDict(frozen=True)

    login: str
    senha: str


class ConfiguracaoExecucao(BaseModel):
    """Parâmetros de uma execução. Imutável depois de criada."""
    model_config = ConfigDict(frozen=True)

    data_inicial: Optional[date] = None
    data_final: Optional[date] = None
    tipo_nota: TipoNota = TipoNota.EMITIDAS
    baixar_xml: bool = True
    baixar_pdf: bool = True
    pasta_destino: str = "downloads"
    credenciais: Optional[Credenciais] = None
    usuario_email: str = ""
    empresa_id: Optional[str] = None
    empresa_nome: Optional[str] = None
    modo: ModoExecucao = ModoExecucao.MANUAL

    @property
    def formatos(self) -> List[Formato]:
        formatos = []
        if self.baixar_xml:
            formatos.append(Formato.XML)
        if self.baixar_pdf:
            formatos.append(Formato.PDF)
        return formatos

    @property
    def pasta_base(self) -> Path:
        return Path(self.pasta_destino or "downloads").resolve()

    @property
    def pasta_final(self) -> Path:
        return self.pasta_base / self.tipo_nota.subpasta


class ArquivoCapturado(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequencia: int
    caminho_temporario: str
    nome_original: str
    extensao: str
    cnpj: Optional[str] = None
    caminho_final: Path


class ResultadoExecucao(BaseModel):
    logs: List[str] = Field(default_factory=list)
    total_arquivos: int = 0
    status: StatusExecucao = StatusExecucao.SUCESSO
    pasta_saida: Optional[Path] = None

    @property
    def sucesso(self) -> bool:
        return self.status is not StatusExecucao.ERRO


class Empresa(BaseModel):
    """Empresa cadastrada para execução em lote."""
    id: str
    nome: str = ""
    cnpj: str = ""
    login_portal: Optional[str] = None
    senha_portal: Optional[str] = None

    @property
    def login_efetivo(self) -> Optional[str]:
        return self.login_portal or self.cnpj or None
