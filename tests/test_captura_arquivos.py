from pathlib import Path

from playwright.sync_api import TimeoutError as PWTimeoutError

from modulos import captura_arquivos as cap
from modulos.logger import ColetorLogs
from modulos.modelos import Formato, TipoNota

from portal_fake import FakeDownload, FakeElemento, FakePagina


def _download(pasta: Path, nome: str, url: str = "", conteudo: str = "x") -> FakeDownload:
    arquivo = pasta / f"tmp-{len(list(pasta.iterdir()))}"
    arquivo.write_text(conteudo, encoding="utf-8")
    return FakeDownload(str(arquivo), nome, url)


def test_extrair_cnpj_com_e_sem_pontuacao():
    assert cap.extrair_cnpj("NFSe-12.345.678/0001-90.xml") == "12345678000190"
    assert cap.extrair_cnpj("nota_12345678000190_1.pdf") == "12345678000190"
    assert cap.extrair_cnpj("nota-123.xml") is None
    assert cap.extrair_cnpj(None) is None


def test_resolver_extensao_por_ordem_de_preferencia():
    assert cap.resolver_extensao("DANFSe.PDF", Formato.XML) == ".PDF"
    assert cap.resolver_extensao("download", Formato.XML) == ".xml"
    assert cap.resolver_extensao("download", Formato.PDF) == ".pdf"
    assert cap.resolver_extensao("download", None) == ".bin"


def test_nome_final_usa_cnpj_ou_linha():
    assert cap.montar_nome_arquivo(TipoNota.EMITIDAS, "12345678000190", 3, 7, ".xml") == \
        "emitidas-12345678000190-7.xml"
    assert cap.montar_nome_arquivo(TipoNota.RECEBIDAS, None, 3, 8, ".pdf") == "recebidas-linha3-8.pdf"


def test_mesmo_cnpj_com_sequencias_diferentes_nao_colide():
    nomes = {cap.montar_nome_arquivo(TipoNota.EMITIDAS, "12345678000190", 1, seq, ".xml") for seq in range(1, 51)}
    assert len(nomes) == 50


def test_salvar_download_copia_sem_mover(pasta_temp, tmp_path):
    destino = tmp_path / "downloads" / "Entrada"
    download = _download(pasta_temp, "NFSe_98765432000110.xml", conteudo="<xml/>")
    log = ColetorLogs()

    capturado = cap.salvar_download(download, destino, TipoNota.RECEBIDAS, Formato.XML,
                                    cap.ContadorArquivos(), 2, log)

    assert capturado.sequencia == 1
    assert capturado.cnpj == "98765432000110"
    assert capturado.caminho_final == destino / "recebidas-98765432000110-1.xml"
    assert capturado.caminho_final.read_text(encoding="utf-8") == "<xml/>"
    assert Path(download.path()).exists()
    assert any('Novo nome: "recebidas-98765432000110-1.xml"' in linha for linha in log.linhas)


def test_cnpj_procurado_na_url_quando_o_nome_nao_tem(pasta_temp, tmp_path):
    download = _download(pasta_temp, "DANFSe", url="https://portal/Download?cnpj=11.222.333/0001-81&id=9")

    capturado = cap.salvar_download(download, tmp_path / "Saida", TipoNota.EMITIDAS, Formato.PDF,
                                    cap.ContadorArquivos(), 1, ColetorLogs())

    assert capturado.nome_original == "DANFSe.pdf"
    assert capturado.extensao == ".pdf"
    assert capturado.caminho_final.name == "emitidas-11222333000181-1.pdf"


def test_sequencia_estritamente_crescente_em_n_capturas(pasta_temp, tmp_path):
    contador = cap.ContadorArquivos()
    destino = tmp_path / "Saida"
    capturados = [
        cap.salvar_download(_download(pasta_temp, "nota.xml"), destino, TipoNota.EMITIDAS, Formato.XML,
                            contador, linha, ColetorLogs())
        for linha in range(1, 21)
    ]

    assert [c.sequencia for c in capturados] == list(range(1, 21))
    assert len({c.caminho_final for c in capturados}) == 20
    assert len(list(destino.iterdir())) == 20


def test_download_sem_caminho_nao_consome_sequencia(tmp_path):
    contador = cap.ContadorArquivos()
    log = ColetorLogs()

    capturado = cap.salvar_download(FakeDownload(None, "nota.xml"), tmp_path, TipoNota.EMITIDAS,
                                    Formato.XML, contador, 4, log)

    assert capturado is None
    assert contador.valor == 0
    assert "linha 4" in log.linhas[-1]


def test_capturar_download_sem_evento_devolve_none(tmp_path):
    pagina = FakePagina()
    log = ColetorLogs()

    capturado = cap.capturar_download(pagina, FakeElemento(), tmp_path, TipoNota.EMITIDAS, Formato.PDF,
                                      cap.ContadorArquivos(), 5, log)

    assert capturado is None
    assert log.linhas == [
        "[BOT][AVISO] Não foi possível identificar um download PDF após o clique na linha 5."
    ]


def test_capturar_download_com_evento(pasta_temp, tmp_path):
    pagina = FakePagina()
    download = _download(pasta_temp, "nota.xml")

    def disparar():
        pagina.download_pendente = download

    capturado = cap.capturar_download(pagina, FakeElemento(ao_avaliar=disparar), tmp_path / "Saida",
                                      TipoNota.EMITIDAS, Formato.XML, cap.ContadorArquivos(), 1, ColetorLogs())

    assert capturado.caminho_final.name == "emitidas-linha1-1.xml"


def test_clique_que_falha_e_relatado_como_clique(tmp_path):
    def clique_que_falha():
        raise PWTimeoutError("element is not visible")

    log = ColetorLogs()
    capturado = cap.capturar_download(FakePagina(), FakeElemento(ao_avaliar=clique_que_falha), tmp_path,
                                      TipoNota.EMITIDAS, Formato.XML, cap.ContadorArquivos(), 3, log)

    assert capturado is None
    assert log.linhas == [
        "[BOT][AVISO] Não foi possível clicar na opção XML da linha 3: element is not visible"
    ]
