#--------------------------------------------------------------------------
# robo_core.py - v2.0 Execução manual e em lote (portal nacional ou simulação)
#--------------------------------------------------------------------------
import re
import sys
from typing import Callable, Dict, Iterable, List, Optional, Union

import gestor_config as config
import gestor_db as db
from modulos import logger
from modulos.datas import montar_rotulo_periodo
from modulos.logger import ColetorLogs
from modulos.modelos import (
    ConfiguracaoExecucao, Credenciais, Empresa, ModoExecucao, ResultadoExecucao, StatusExecucao,
)
from modulos.portal_nacional import RoboPortalNacional
from modulos.simulacao import executar_simulacao

Registrador = Callable[..., object]
OnLog = Optional[Callable[[str], None]]

def _sanitize_path_component(name: Optional[str]) -> str:
    if not name: return ""
    return re.sub(r'[<>:"/\\|?*\x00-\x1f]+', '_', name).strip()

def _registrar_historico(registrar: Registrador, cfg: ConfiguracaoExecucao, log: ColetorLogs,
                         total_arquivos: int, status: StatusExecucao, detalhes: str,
                         erros: Optional[List[Dict]] = None):
    """Falha ao gravar o histórico nunca derruba a execução."""
    try:
        registrar(
            usuario_email=cfg.usuario_email,
            empresa_id=cfg.empresa_id,
            empresa_nome=cfg.empresa_nome,
            tipo=cfg.modo.value,
            total_arquivos=total_arquivos,
            status=status.value,
            erros=erros,
            detalhes=detalhes,
        )
    except Exception as e:
        logger.log_error(f"Erro ao registrar histórico: {e}", exc_info=sys.exc_info())
        log.aviso(f"Não foi possível registrar o histórico desta execução: {e}")

def _executar_simulado(cfg: ConfiguracaoExecucao, log: ColetorLogs, registrar: Registrador) -> ResultadoExecucao:
    resultado = executar_simulacao(cfg, log)
    periodo = montar_rotulo_periodo(cfg.data_inicial, cfg.data_final)
    _registrar_historico(
        registrar, cfg, log, 0, StatusExecucao.SIMULADO,
        f"Simulação - tipoNota={cfg.tipo_nota.value}, período={periodo}.",
    )
    resultado.logs = list(log.linhas)
    return resultado

def _executar_portal(cfg: ConfiguracaoExecucao, credenciais: Credenciais, log: ColetorLogs,
                     registrar: Registrador, abrir_sessao: Optional[Callable] = None) -> ResultadoExecucao:
    periodo = montar_rotulo_periodo(cfg.data_inicial, cfg.data_final)
    robo = RoboPortalNacional(cfg, credenciais, log, abrir_sessao=abrir_sessao)
    erros = None
    try:
        robo.executar()
        status = StatusExecucao.PARCIAL if robo.teve_falhas else StatusExecucao.SUCESSO
    except Exception as e:
        logger.log_error(f"Erro no robô do portal nacional: {e}", exc_info=sys.exc_info())
        log.erro(f"ERRO durante a execução no portal nacional: {e}")
        status = StatusExecucao.ERRO
        erros = [{"message": str(e) or "Verificar logs desta execução"}]

    _registrar_historico(
        registrar, cfg, log, robo.total_arquivos, status,
        f"Execução {cfg.modo.value} no portal nacional - tipoNota={cfg.tipo_nota.value}, período={periodo}.",
        erros,
    )
    log.info("Fluxo do portal nacional finalizado.")
    return ResultadoExecucao(
        logs=list(log.linhas),
        total_arquivos=robo.total_arquivos,
        status=status,
        pasta_saida=cfg.pasta_base,
    )

def executar_manual(cfg: ConfiguracaoExecucao, usar_portal: Optional[bool] = None, on_log: OnLog = None,
                    registrar: Optional[Registrador] = None,
                    abrir_sessao: Optional[Callable] = None) -> ResultadoExecucao:
    """
    Uma execução para um único tipo de nota.
    usar_portal=None lê NFSE_USE_PORTAL neste momento.
    """
    if usar_portal is None:
        usar_portal = config.portal_habilitado()
    registrar = registrar or db.registrar_execucao
    log = ColetorLogs(on_log)
    logger.log_info(f"executar_manual -> NFSE_USE_PORTAL = {config.valor_flag_portal()} => usar_portal: {usar_portal}")

    if not usar_portal:
        return _executar_simulado(cfg, log, registrar)

    credenciais = cfg.credenciais or config.credenciais_padrao()
    if credenciais is None:
        log.aviso("Login/senha não informados para esta execução. Voltando para modo SIMULAÇÃO.")
        return _executar_simulado(cfg, log, registrar)

    return _executar_portal(cfg, credenciais, log, registrar, abrir_sessao)

def combinar_status(status_empresas: List[StatusExecucao], puladas: int = 0) -> StatusExecucao:
    """Status agregado de várias execuções (lote, ou vários tipos de nota)."""
    if not status_empresas:
        return StatusExecucao.PARCIAL if puladas else StatusExecucao.SUCESSO
    if all(s is StatusExecucao.SIMULADO for s in status_empresas) and not puladas:
        return StatusExecucao.SIMULADO
    if all(s is StatusExecucao.SUCESSO for s in status_empresas) and not puladas:
        return StatusExecucao.SUCESSO
    if all(s is StatusExecucao.ERRO for s in status_empresas):
        return StatusExecucao.ERRO
    return StatusExecucao.PARCIAL

def executar_lote(empresas: Iterable[Union[Empresa, Dict]], opcoes: ConfiguracaoExecucao,
                  usar_portal: Optional[bool] = None, on_log: OnLog = None,
                  registrar: Optional[Registrador] = None,
                  abrir_sessao: Optional[Callable] = None) -> ResultadoExecucao:
    """
    Uma execução por empresa, em ordem e uma de cada vez. No modo real, empresas
    sem login/senha são puladas (nunca simuladas).
    """
    if usar_portal is None:
        usar_portal = config.portal_habilitado()
    registrar = registrar or db.registrar_execucao
    log = ColetorLogs(on_log)
    modo_label = "MODO REAL (portal nacional)" if usar_portal else "SIMULAÇÃO"
    log.info(f"Iniciando execução em lote ({modo_label})...")

    empresas = [e if isinstance(e, Empresa) else Empresa.model_validate(e) for e in empresas or []]
    if not empresas:
        log.info("Nenhuma empresa cadastrada para executar em lote.")
        return ResultadoExecucao(logs=list(log.linhas), status=StatusExecucao.SUCESSO)

    pasta_base = opcoes.pasta_base
    if usar_portal:
        log.info(f"Arquivos de cada empresa em: {pasta_base}/<id>-<nome>/Entrada|Saida")
    status_empresas: List[StatusExecucao] = []
    total_arquivos = 0
    puladas = 0
    com_erro = 0

    for emp in empresas:
        log.separador()
        log.info(f"Processando empresa: {emp.nome} (CNPJ: {emp.cnpj})...")
        pasta_empresa = pasta_base / _sanitize_path_component(f"{emp.id}-{emp.nome}")
        cfg_empresa = opcoes.model_copy(update={
            "modo": ModoExecucao.LOTE,
            "empresa_id": emp.id or emp.cnpj,
            "empresa_nome": emp.nome,
            "pasta_destino": str(pasta_empresa),
            "credenciais": None,
        })
        try:
            if usar_portal:
                login, senha = emp.login_efetivo, emp.senha_portal
                if not login or not senha:
                    puladas += 1
                    log.aviso("Login/senha da empresa não configurados. Pulando esta empresa no lote (sem simulação).")
                    continue
                credenciais = Credenciais(login=login, senha=senha)
                cfg_empresa = cfg_empresa.model_copy(update={"credenciais": credenciais})
                resultado = _executar_portal(cfg_empresa, credenciais, ColetorLogs(log.repassar),
                                             registrar, abrir_sessao)
            else:
                resultado = _executar_simulado(cfg_empresa, ColetorLogs(log.repassar), registrar)
        except Exception as e:
            com_erro += 1
            status_empresas.append(StatusExecucao.ERRO)
            logger.log_error(f"Erro ao processar empresa {emp.id}: {e}", exc_info=sys.exc_info())
            log.erro(f"Erro ao processar a empresa {emp.nome}: {e}")
            continue

        if resultado.status is StatusExecucao.ERRO:
            com_erro += 1
        status_empresas.append(resultado.status)
        total_arquivos += resultado.total_arquivos

    status = combinar_status(status_empresas, puladas)
    log.separador()
    log.info(
        f"Execução em lote finalizada ({'modo REAL / portal' if usar_portal else 'simulação'}). "
        f"Empresas processadas: {len(status_empresas)}, puladas: {puladas}, com erro: {com_erro}. "
        f"Total de arquivos: {total_arquivos}."
    )
    return ResultadoExecucao(
        logs=list(log.linhas),
        total_arquivos=total_arquivos,
        status=status,
        pasta_saida=pasta_base if usar_portal else None,
    )
