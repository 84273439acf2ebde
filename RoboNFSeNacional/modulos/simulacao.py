#--------------------------------------------------------------------------
# modulos/simulacao.py - Execução simulada (sem navegador, só logs)
#--------------------------------------------------------------------------
import gestor_config as config
from modulos.datas import montar_rotulo_periodo
from modulos.logger import ColetorLogs
from modulos.modelos import ConfiguracaoExecucao, Formato, ResultadoExecucao, StatusExecucao


def executar_simulacao(cfg: ConfiguracaoExecucao, log: ColetorLogs) -> ResultadoExecucao:
    periodo = montar_rotulo_periodo(cfg.data_inicial, cfg.data_final)
    formatos = " + ".join(f.value.upper() for f in cfg.formatos) or "Nenhum"

    log.info(f'(Debug) Modo SIMULAÇÃO ativo. NFSE_USE_PORTAL = "{config.valor_flag_portal()}".')
    log.info("Iniciando robô de download manual de NFS-e (SIMULAÇÃO)...")
    log.info(f"Período selecionado: {periodo}")
    log.info(f"Tipo de nota: {cfg.tipo_nota.rotulo}")
    log.info(f"Formatos: {formatos}")
    log.info(f"Pasta de destino: {cfg.pasta_destino or 'downloads'}")

    log.info("(Simulação) Abrindo navegador automatizado...")
    log.info("(Simulação) Acessando portal da NFS-e...")
    log.info("(Simulação) Aplicando filtros de data e tipo de nota...")
    if Formato.XML in cfg.formatos:
        log.info("(Simulação) Baixando arquivos XML...")
    if Formato.PDF in cfg.formatos:
        log.info("(Simulação) Baixando arquivos PDF...")
    log.info("(Simulação) Organizando arquivos nas pastas Entrada/Saida...")
    log.info("Download manual concluído com sucesso (simulação).")

    return ResultadoExecucao(
        logs=list(log.linhas),
        total_arquivos=0,
        status=StatusExecucao.SIMULADO,
        pasta_saida=None,
    )
