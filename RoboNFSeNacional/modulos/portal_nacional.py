#---------------------------------------------------------------------------
# modulos/portal_nacional.py - v1.0 Robô do Emissor Nacional de NFS-e
#  - Login com seletores alternativos (fatal se algum campo faltar)
#  - Notas Emitidas/Recebidas: ícone do topo, senão URL direta
#  - Filtro de período pelos campos do formulário, senão pela coluna "Emissão"
#  - Menu suspenso de cada linha: Download XML e/ou DANFS-e (PDF)
#---------------------------------------------------------------------------
from enum import Enum
from typing import Callable, List, Optional

from playwright.sync_api import Error as PWError, TimeoutError as PWTimeoutError

import gestor_config as config
from modulos import datas
from modulos.captura_arquivos import ContadorArquivos, capturar_download
from modulos.logger import ColetorLogs, log_info
from modulos.modelos import ConfiguracaoExecucao, Credenciais, Formato
from modulos.navegador import ErroAcao, aguardar_evento, localizar, sessao_navegador

# --- Seletores (primeiro que existir vence) ---
SELETORES_LOGIN = ['input[name="Login"]', 'input[id="Login"]', 'input[type="text"]']
SELETORES_SENHA = ['input[name="Senha"]', 'input[id="Senha"]', 'input[type="password"]']
SELETORES_BOTAO_ENTRAR = [
    'button[type="submit"]', 'input[type="submit"]',
    'button:has-text("Entrar")', 'button:has-text("Acessar")',
]

SELETORES_DATA_INICIAL = [
    'input[id*="DataInicio"]', 'input[name*="DataInicio"]',
    'input[id*="DataEmissaoInicial"]', 'input[name*="DataEmissaoInicial"]',
    'input[id*="DataCompetenciaInicio"]', 'input[name*="DataCompetenciaInicio"]',
]
SELETORES_DATA_FINAL = [
    'input[id*="DataFim"]', 'input[name*="DataFim"]',
    'input[id*="DataEmissaoFinal"]', 'input[name*="DataEmissaoFinal"]',
    'input[id*="DataCompetenciaFim"]', 'input[name*="DataCompetenciaFim"]',
]
SELETORES_BOTAO_PESQUISAR = [
    'button[type="submit"]:has-text("Pesquisar")', 'button:has-text("Consultar")', 'button:has-text("Buscar")',
    'input[type="submit"][value*="Pesquisar"]', 'input[type="submit"][value*="Consultar"]',
    'input[type="submit"][value*="Buscar"]',
]

SELETORES_MENU_SUSPENSO = [".menu-suspenso-tabela"]
SELETORES_GATILHO_MENU = [".icone-trigger"]
SELETORES_CONTEUDO_MENU = [".menu-content", ".list-group"]

SELETORES_POR_FORMATO = {
    Formato.XML: [
        'a:has-text("Download XML")', 'a:has-text("XML")',
        'a[href*="DownloadXml"]', 'a[href*="xml"]',
    ],
    Formato.PDF: [
        'a:has-text("Download DANFS-e")', 'a:has-text("Download DANFS")',
        'a:has-text("DANFS-e")', 'a:has-text("DANFS")', 'a:has-text("PDF")',
        'a[href*="DANFS"]', 'a[href*="pdf"]',
    ],
}
DESCRICAO_FORMATO = {
    Formato.XML: '"Download XML"',
    Formato.PDF: '"Download DANFS-e"/PDF',
}

TITULO_ICONE_NOTAS = {
    "emitidas": "NFS-e Emitidas",
    "recebidas": "NFS-e Recebidas",
}
PADRAO_URL_NOTAS = {
    "emitidas": "**/Notas/Emitidas",
    "recebidas": "**/Notas/Recebidas",
}

CAMINHO_LOGIN = "/Login"
TEXTO_SEM_REGISTROS = "Nenhum registro encontrado"
SELETOR_LINHAS = "table tbody tr"
SELETOR_TABELA_OU_VAZIO = f'{SELETOR_LINHAS}, :text("{TEXTO_SEM_REGISTROS}")'

PAUSA_FILTRO_MS = 1000
PAUSA_POS_PESQUISA_MS = 3000
PAUSA_MENU_MS = 400
PAUSA_ENTRE_LINHAS_MS = 300


class ErroPortal(Exception):
    """Condição que impede a execução inteira (login, tela de notas)."""


class Estado(Enum):
    DESCONECTADO = "desconectado"
    AUTENTICANDO = "autenticando"
    AUTENTICADO = "autenticado"
    LISTA_NOTAS = "lista_notas"
    FILTRANDO = "filtrando"
    PERCORRENDO_LINHAS = "percorrendo_linhas"
    CONCLUIDO = "concluido"
    ABORTADO = "abortado"


class RoboPortalNacional:
    """
    Uma execução no Emissor Nacional: um tipo de nota, um par de credenciais,
    um período. Cada instância tem sua própria numeração de arquivos.
    """

    def __init__(self, cfg: ConfiguracaoExecucao, credenciais: Credenciais, log: ColetorLogs,
                 abrir_sessao: Optional[Callable] = None):
        self.cfg = cfg
        self.credenciais = credenciais
        self.log = log
        self.abrir_sessao = abrir_sessao or (lambda: sessao_navegador(headless=config.headless()))
        self.estado = Estado.DESCONECTADO
        self.contador = ContadorArquivos()
        self.falhas_linha = 0
        self.tabela_ausente = False
        self.filtrar_na_tabela = False

    @property
    def total_arquivos(self) -> int:
        return self.contador.valor

    @property
    def teve_falhas(self) -> bool:
        return self.falhas_linha > 0 or self.tabela_ausente

    @property
    def periodo_informado(self) -> bool:
        return bool(self.cfg.data_inicial or self.cfg.data_final)

    def _mudar_estado(self, novo: Estado):
        log_info(f"Portal nacional: {self.estado.value} -> {novo.value}")
        self.estado = novo

    # ---------------- ciclo completo ----------------

    def executar(self) -> int:
        """Roda a navegação inteira. Exceções não tratadas abortam a execução."""
        self.log.info(
            f"Pasta base de downloads: {self.cfg.pasta_base} | Subpasta: {self.cfg.tipo_nota.subpasta} "
            f"| Final: {self.cfg.pasta_final}"
        )
        self.cfg.pasta_final.mkdir(parents=True, exist_ok=True)

        sessao_aberta = False
        try:
            with self.abrir_sessao() as pagina:
                sessao_aberta = True
                self._autenticar(pagina)
                self._abrir_lista_notas(pagina)
                self._aplicar_filtro(pagina)
                linhas = self._listar_linhas(pagina)
                if linhas:
                    self._percorrer_linhas(pagina, linhas)
        except Exception:
            self._mudar_estado(Estado.ABORTADO)
            raise
        finally:
            if sessao_aberta:
                self.log.info("Navegador fechado.")

        self.log.info(
            f"Processo de download finalizado. Total de arquivos capturados nesta execução: {self.total_arquivos}."
        )
        self._mudar_estado(Estado.CONCLUIDO)
        return self.total_arquivos

    # ---------------- login ----------------

    def _exigir_campo(self, pagina, seletores: List[str], descricao: str):
        timeout = config.timeout_ms("NFSE_TIMEOUT_CAMPO_MS", 8000)
        elemento = localizar(pagina, seletores, timeout_ms=timeout)
        if elemento is None:
            self.log.erro(f"Não consegui encontrar o {descricao} na tela de login.")
            raise ErroPortal(f"Campo não localizado na tela de login: {descricao}.")
        return elemento

    def _autenticar(self, pagina):
        self._mudar_estado(Estado.AUTENTICANDO)
        self.log.info("Abrindo portal nacional da NFS-e...")
        pagina.goto(config.url_login(), wait_until="domcontentloaded",
                    timeout=config.timeout_ms("NFSE_TIMEOUT_NAVEGACAO_MS", 20000))
        self.log.info("Página de login carregada.")

        self._exigir_campo(pagina, SELETORES_LOGIN, "campo de login").fill(self.credenciais.login)
        self.log.info("Login preenchido.")
        self._exigir_campo(pagina, SELETORES_SENHA, "campo de senha").fill(self.credenciais.senha)
        self.log.info("Senha preenchida.")
        botao = self._exigir_campo(pagina, SELETORES_BOTAO_ENTRAR, "botão de entrar")

        timeout = config.timeout_ms("NFSE_TIMEOUT_LOGIN_MS", 15000)
        try:
            aguardar_evento(
                pagina.expect_navigation(wait_until="networkidle", timeout=timeout),
                botao.click,
            )
        except ErroAcao as e:
            self.log.erro(f"Não consegui clicar no botão de entrar: {e}")
            raise ErroPortal(f"Clique no botão de entrar falhou: {e}") from e
        self.log.info("Botão de login clicado. Resposta aguardada.")

        url_atual = pagina.url
        log_info(f"URL após login: {url_atual}")
        if CAMINHO_LOGIN in url_atual:
            if config.login_estrito():
                self.log.erro("Ainda estou na tela de Login após enviar as credenciais.")
                raise ErroPortal("Login não concluído: o portal permaneceu na tela de Login.")
            self.log.aviso(
                "Ainda estou na tela de Login. O login pode ter falhado ou exigir alguma ação extra "
                "(captcha, seleção, etc.). Prosseguindo mesmo assim."
            )
        else:
            self.log.info("Login aparentemente BEM-SUCEDIDO (URL diferente da tela de Login).")
        self._mudar_estado(Estado.AUTENTICADO)

    # ---------------- tela de notas ----------------

    def _abrir_lista_notas(self, pagina):
        tipo = self.cfg.tipo_nota.value
        titulo = TITULO_ICONE_NOTAS[tipo]
        try:
            self.log.info(f'Tentando clicar no ícone "{titulo}" na barra superior...')
            pagina.click(f'[title="{titulo}"]', timeout=config.timeout_ms("NFSE_TIMEOUT_MENU_MS", 8000))
            try:
                pagina.wait_for_url(PADRAO_URL_NOTAS[tipo], timeout=config.timeout_ms("NFSE_TIMEOUT_LOGIN_MS", 15000))
            except PWTimeoutError:
                # algumas versões do portal mantêm /EmissorNacional na barra de endereço
                pass
            self.log.info(f"Clique em {titulo} concluído. URL atual: {pagina.url}")
        except PWError:
            self.log.aviso("Não consegui clicar no ícone do menu de notas. Tentando acessar pela URL direta...")
            try:
                pagina.goto(config.url_notas(tipo), wait_until="networkidle",
                            timeout=config.timeout_ms("NFSE_TIMEOUT_NAVEGACAO_MS", 20000))
            except PWError as e:
                self.log.erro("Não consegui abrir a tela de notas nem pelo clique nem pela URL direta.")
                raise ErroPortal(f"Tela de notas inacessível: {e}") from e
            self.log.info(f"Tela de notas aberta pela URL direta. URL atual: {pagina.url}")
        self._mudar_estado(Estado.LISTA_NOTAS)

    # ---------------- filtro de período ----------------

    def _aplicar_filtro(self, pagina):
        self._mudar_estado(Estado.FILTRANDO)
        if not self.periodo_informado:
            return

        periodo = datas.montar_rotulo_periodo(self.cfg.data_inicial, self.cfg.data_final)
        try:
            pagina.wait_for_timeout(PAUSA_FILTRO_MS)
            campo_inicio = localizar(pagina, SELETORES_DATA_INICIAL) if self.cfg.data_inicial else None
            campo_fim = localizar(pagina, SELETORES_DATA_FINAL) if self.cfg.data_final else None

            faltando = ((self.cfg.data_inicial and campo_inicio is None)
                        or (self.cfg.data_final and campo_fim is None))
            if campo_inicio is None and campo_fim is None:
                self.filtrar_na_tabela = True
            else:
                if faltando:
                    self.filtrar_na_tabela = True
                if campo_inicio is not None:
                    campo_inicio.fill(datas.formatar_data_br(self.cfg.data_inicial))
                if campo_fim is not None:
                    campo_fim.fill(datas.formatar_data_br(self.cfg.data_final))

                botao = localizar(pagina, SELETORES_BOTAO_PESQUISAR)
                if botao is None:
                    self.filtrar_na_tabela = True
                else:
                    botao.click()
                    pagina.wait_for_timeout(PAUSA_POS_PESQUISA_MS)
                    self.log.info(f"Filtro de período aplicado pelos campos: {periodo}.")
        except PWError as e:
            self.filtrar_na_tabela = True
            self.log.aviso(f"Erro ao tentar aplicar filtro de data pelos campos: {e}.")

        if self.filtrar_na_tabela:
            self.log.info(
                "Não localizei todos os campos de data no formulário. Vou aplicar o filtro diretamente "
                "pela coluna 'Emissão' da tabela."
            )

    # ---------------- tabela ----------------

    def _listar_linhas(self, pagina) -> list:
        """Fotografia fixa das linhas da tabela (lista vazia se não houver notas)."""
        try:
            pagina.wait_for_selector(SELETOR_TABELA_OU_VAZIO,
                                     timeout=config.timeout_ms("NFSE_TIMEOUT_TABELA_MS", 10000))
        except PWTimeoutError:
            self.tabela_ausente = True
            self.log.aviso("A tabela de notas não carregou dentro do prazo. Nenhuma linha será processada.")
            return []

        try:
            texto = pagina.text_content("body") or ""
        except PWError:
            texto = ""
        if TEXTO_SEM_REGISTROS in texto:
            self.log.info(f"Nenhuma nota encontrada (a tela exibiu '{TEXTO_SEM_REGISTROS}').")
            return []

        linhas = pagina.query_selector_all(SELETOR_LINHAS)
        self.log.info(f"Tabela de notas carregada. Linhas encontradas: {len(linhas)}.")
        return linhas

    def _percorrer_linhas(self, pagina, linhas: list):
        self._mudar_estado(Estado.PERCORRENDO_LINHAS)
        if not self.cfg.formatos:
            self.log.info("Nenhum formato selecionado (XML/PDF). Nada será baixado.")
            return

        for indice, linha in enumerate(linhas, start=1):
            try:
                self._processar_linha(pagina, linha, indice)
            except Exception as e:
                self.falhas_linha += 1
                self.log.erro(f"Erro inesperado ao processar a linha {indice}: {e}")

    def _emissao_fora_do_periodo(self, celulas: list, indice: int) -> bool:
        if not celulas:
            return False
        texto = (celulas[0].inner_text() or "").strip()
        emissao = datas.parse_data_br(texto)
        if datas.dentro_do_periodo(emissao, self.cfg.data_inicial, self.cfg.data_final):
            return False
        self.log.info(f"Linha {indice}: data de emissão {texto} fora do período selecionado. Ignorando linha.")
        return True

    def _processar_linha(self, pagina, linha, indice: int):
        celulas = linha.query_selector_all("td")

        # a coluna 'Emissão' também confere o período quando o portal filtrou pelos campos
        if self.periodo_informado and self._emissao_fora_do_periodo(celulas, indice):
            return

        if not celulas:
            self.falhas_linha += 1
            self.log.aviso(f"Linha {indice}: não encontrei coluna de ações (última coluna).")
            return

        celula_acoes = celulas[-1]
        menu_suspenso = localizar(celula_acoes, SELETORES_MENU_SUSPENSO) or celula_acoes

        gatilho = localizar(menu_suspenso, SELETORES_GATILHO_MENU)
        if gatilho is None:
            self.falhas_linha += 1
            self.log.aviso(f"Linha {indice}: não encontrei o ícone do menu suspenso (.icone-trigger).")
            return

        gatilho.click(force=True)
        pagina.wait_for_timeout(PAUSA_MENU_MS)

        menu = localizar(menu_suspenso, SELETORES_CONTEUDO_MENU)
        if menu is None:
            self.falhas_linha += 1
            self.log.aviso(f"Linha {indice}: menu suspenso (.menu-content/.list-group) não encontrado após clique.")
            return

        for formato in self.cfg.formatos:
            item = localizar(menu, SELETORES_POR_FORMATO[formato])
            if item is None:
                self.falhas_linha += 1
                self.log.aviso(f"Linha {indice}: não encontrei item de menu para {formato.value.upper()}.")
                continue

            self.log.info(f"Linha {indice}: clicando na opção {DESCRICAO_FORMATO[formato]}...")
            capturado = capturar_download(
                pagina, item, self.cfg.pasta_final, self.cfg.tipo_nota, formato,
                self.contador, indice, self.log,
            )
            if capturado is None:
                self.falhas_linha += 1

        pagina.wait_for_timeout(PAUSA_ENTRE_LINHAS_MS)
