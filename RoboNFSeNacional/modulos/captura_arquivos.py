#--------------------------------------------------------------------------
# modulos/captura_arquivos.py - Captura dos downloads do navegador e nomes finais
#--------------------------------------------------------------------------
import os
import re
import shutil
from pathlib import Path
from typing import Optional

import gestor_config as config
from modulos.logger import ColetorLogs
from modulos.modelos import ArquivoCapturado, Formato, TipoNota
from modulos.navegador import ErroAcao, aguardar_evento

_RE_CNPJ = re.compile(r"(\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2})")

EXTENSAO_POR_FORMATO = {
    Formato.XML: ".xml",
    Formato.PDF: ".pdf",
}
EXTENSAO_GENERICA = ".bin"

# Clique via DOM: os itens do menu suspenso nem sempre estão "visíveis" para o Playwright
JS_CLIQUE = """(el) => {
    if (el instanceof HTMLElement) {
        el.click();
    } else {
        el.dispatchEvent(new MouseEvent('click', { bubbles: true, cancelable: true }));
    }
}"""


class ContadorArquivos:
    """Numeração dos arquivos de uma execução. Nunca repete um número."""
    def __init__(self):
        self.valor = 0

    def proximo(self) -> int:
        self.valor += 1
        return self.valor


def extrair_cnpj(texto: Optional[str]) -> Optional[str]:
    if not texto:
        return None
    match = _RE_CNPJ.search(texto)
    if not match:
        return None
    return re.sub(r"\D", "", match.group(1))


def resolver_extensao(nome: str, formato: Optional[Formato]) -> str:
    extensao = os.path.splitext(nome)[1]
    if extensao:
        return extensao
    return EXTENSAO_POR_FORMATO.get(formato, EXTENSAO_GENERICA)


def montar_nome_arquivo(tipo_nota: TipoNota, cnpj: Optional[str], linha: int, sequencia: int, extensao: str) -> str:
    parte_id = cnpj or f"linha{linha}"
    return f"{tipo_nota.value}-{parte_id}-{sequencia}{extensao}"


def salvar_download(download, pasta_final: Path, tipo_nota: TipoNota, formato: Optional[Formato],
                    contador: ContadorArquivos, linha: int, log: ColetorLogs) -> Optional[ArquivoCapturado]:
    """Copia o arquivo temporário do download para a pasta final com o nome padronizado."""
    caminho_temp = download.path()
    if not caminho_temp:
        log.aviso(f"O navegador não retornou caminho de arquivo para o download da linha {linha}.")
        return None

    nome_original = re.sub(r"[/\\]", "_", download.suggested_filename or "arquivo")
    extensao = resolver_extensao(nome_original, formato)
    if not os.path.splitext(nome_original)[1]:
        nome_original += extensao

    cnpj = extrair_cnpj(nome_original) or extrair_cnpj(download.url)

    sequencia = contador.proximo()
    novo_nome = montar_nome_arquivo(tipo_nota, cnpj, linha, sequencia, extensao)

    pasta_final.mkdir(parents=True, exist_ok=True)
    caminho_final = pasta_final / novo_nome
    shutil.copyfile(caminho_temp, caminho_final)

    log.info(
        f'Arquivo #{sequencia} capturado na linha {linha}. Original: "{nome_original}" -> '
        f'Novo nome: "{novo_nome}". Caminho final: {caminho_final}'
    )
    return ArquivoCapturado(
        sequencia=sequencia,
        caminho_temporario=str(caminho_temp),
        nome_original=nome_original,
        extensao=extensao,
        cnpj=cnpj,
        caminho_final=caminho_final,
    )


def capturar_download(pagina, elemento, pasta_final: Path, tipo_nota: TipoNota, formato: Optional[Formato],
                      contador: ContadorArquivos, linha: int, log: ColetorLogs) -> Optional[ArquivoCapturado]:
    """
    Clica no elemento esperando o evento de download. Não levanta exceção:
    devolve None quando nada foi capturado.
    """
    rotulo = formato.value.upper() if formato else "PDF/XML"
    try:
        timeout = config.timeout_ms("NFSE_TIMEOUT_DOWNLOAD_MS", 25000)
        download = aguardar_evento(
            pagina.expect_download(timeout=timeout),
            lambda: elemento.evaluate(JS_CLIQUE),
        )
        if download is None:
            log.aviso(f"Não foi possível identificar um download {rotulo} após o clique na linha {linha}.")
            return None
        return salvar_download(download, pasta_final, tipo_nota, formato, contador, linha, log)
    except ErroAcao as e:
        log.aviso(f"Não foi possível clicar na opção {rotulo} da linha {linha}: {e}")
        return None
    except Exception as e:
        log.erro(f"Erro ao clicar/capturar arquivo na linha {linha}: {e}")
        return None
