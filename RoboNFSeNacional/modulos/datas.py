#--------------------------------------------------------------------------
# modulos/datas.py - Conversões de data e período
#--------------------------------------------------------------------------
import re
from datetime import date, datetime
from typing import Optional, Union

_RE_DATA_BR = re.compile(r"(\d{2})/(\d{2})/(\d{4})")

DataOuTexto = Union[date, str, None]


def parse_iso(valor: DataOuTexto) -> Optional[date]:
    """Converte 'aaaa-mm-dd' (ou um date) em date. Retorna None se inválido."""
    if not valor:
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    try:
        return datetime.strptime(valor.strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_data_br(texto: Optional[str]) -> Optional[date]:
    """Procura 'dd/mm/aaaa' dentro do texto. Retorna None quando não há data válida."""
    if not texto:
        return None
    match = _RE_DATA_BR.search(texto)
    if not match:
        return None
    dia, mes, ano = match.groups()
    try:
        return date(int(ano), int(mes), int(dia))
    except ValueError:
        return None


def formatar_data_br(valor: DataOuTexto) -> Optional[str]:
    d = parse_iso(valor)
    return d.strftime("%d/%m/%Y") if d else None


def montar_rotulo_periodo(data_inicial: DataOuTexto, data_final: DataOuTexto) -> str:
    di = formatar_data_br(data_inicial) or "N/D"
    df = formatar_data_br(data_final) or "N/D"
    return f"{di} até {df}"


def dentro_do_periodo(emissao: Optional[date], data_inicial: Optional[date], data_final: Optional[date]) -> bool:
    """
    Comparação inclusiva nos dois extremos, por dia.
    Emissão desconhecida (None) nunca é descartada.
    """
    if emissao is None:
        return True
    if data_inicial and emissao < data_inicial:
        return False
    if data_final and emissao > data_final:
        return False
    return True
