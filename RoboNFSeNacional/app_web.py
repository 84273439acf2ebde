#--------------------------------------------------------------------------
# app_web.py - v2.0 API do painel (download manual, lote, empresas, histórico)
#--------------------------------------------------------------------------
import sys
from typing import Dict, List, Optional

from flask import Flask, jsonify, request
from pydantic import ValidationError

# Módulos do projeto
import gestor_db as db
import gestor_config as config
import robo_core
from modulos import logger
from modulos.modelos import ConfiguracaoExecucao, Credenciais, TipoNota

app = Flask(__name__)

TIPOS_PERMITIDOS = [t.value for t in TipoNota]

def _usuario_email(body: Optional[Dict] = None) -> str:
    """Dono da requisição: cabeçalho X-User-Email, depois corpo, depois query string."""
    body = body or {}
    email = (
        request.headers.get('X-User-Email')
        or body.get('usuarioEmail')
        or body.get('userEmail')
        or request.args.get('usuarioEmail')
        or request.args.get('userEmail')
        or ""
    )
    return str(email).strip()

def _normalizar_tipos(processar_tipos, tipo_fallback: Optional[str]) -> List[str]:
    tipos = []
    if isinstance(processar_tipos, list):
        for t in processar_tipos:
            t = str(t).lower()
            if t in TIPOS_PERMITIDOS and t not in tipos:
                tipos.append(t)
    if tipos:
        return tipos
    t = (tipo_fallback or "emitidas").lower()
    return [t] if t in TIPOS_PERMITIDOS else ["emitidas"]

def _config_da_requisicao(body: Dict, tipo_nota: str, usuario_email: str) -> ConfiguracaoExecucao:
    credenciais = None
    if body.get('login') and body.get('senha'):
        credenciais = Credenciais(login=body['login'], senha=body['senha'])
    return ConfiguracaoExecucao(
        data_inicial=body.get('dataInicial'),
        data_final=body.get('dataFinal'),
        tipo_nota=tipo_nota,
        baixar_xml=bool(body.get('baixarXml')),
        baixar_pdf=bool(body.get('baixarPdf')),
        pasta_destino=body.get('pastaDestino') or config.pasta_saida_padrao(),
        credenciais=credenciais,
        usuario_email=usuario_email,
        empresa_id=body.get('empresaId'),
        empresa_nome=body.get('empresaNome'),
    )

# Manual: {pasta}/Entrada|Saida. Lote: {pasta}/{id}-{nome}/Entrada|Saida.
ESTRUTURA_MANUAL = "tipo_nota"
ESTRUTURA_LOTE = "empresa/tipo_nota"

def _resposta_execucao(resultados: list, estrutura: str):
    logs = [linha for r in resultados for linha in r.logs]
    status = robo_core.combinar_status([r.status for r in resultados])
    pasta = next((str(r.pasta_saida) for r in resultados if r.pasta_saida), None)
    return jsonify({
        "success": all(r.sucesso for r in resultados),
        "status": status.value,
        "logs": logs,
        "totalArquivos": sum(r.total_arquivos for r in resultados),
        "pasta": pasta,
        "estruturaPastas": estrutura,
    })

def _validar_periodo(body: Dict):
    if not body.get('dataInicial') or not body.get('dataFinal'):
        return jsonify({"success": False, "error": "Informe dataInicial e dataFinal (obrigatório)."}), 400
    return None

@app.route('/api/nf/manual', methods=['POST'])
def executar_manual():
    body = request.get_json(silent=True) or {}
    erro = _validar_periodo(body)
    if erro:
        return erro

    usuario_email = _usuario_email(body)
    tipos = _normalizar_tipos(body.get('processarTipos'), body.get('tipoNota'))
    try:
        configs = [_config_da_requisicao(body, tipo, usuario_email) for tipo in tipos]
    except ValidationError as e:
        return jsonify({"success": False, "error": f"Parâmetros inválidos: {e.errors()[0]['msg']}"}), 400

    # Mesma pasta para todos os tipos: Entrada/Saida ficam lado a lado
    resultados = [robo_core.executar_manual(cfg) for cfg in configs]
    return _resposta_execucao(resultados, ESTRUTURA_MANUAL)

@app.route('/api/nf/lote', methods=['POST'])
def executar_lote():
    body = request.get_json(silent=True) or {}
    erro = _validar_periodo(body)
    if erro:
        return erro

    usuario_email = _usuario_email(body)
    empresas = [dict(e) for e in db.listar_empresas(usuario_email)]
    if not empresas:
        return jsonify({
            "success": False,
            "error": "Nenhuma empresa cadastrada para execução em lote (para este usuário).",
        }), 400

    tipos = _normalizar_tipos(body.get('processarTipos'), body.get('tipoNota'))
    try:
        opcoes = [_config_da_requisicao(body, tipo, usuario_email) for tipo in tipos]
    except ValidationError as e:
        return jsonify({"success": False, "error": f"Parâmetros inválidos: {e.errors()[0]['msg']}"}), 400

    resultados = [robo_core.executar_lote(empresas, o) for o in opcoes]
    return _resposta_execucao(resultados, ESTRUTURA_LOTE)

@app.route('/api/empresas', methods=['GET'])
def listar_empresas():
    usuario_email = _usuario_email()
    empresas = []
    for row in db.listar_empresas(usuario_email):
        empresa = dict(row)
        empresa.pop('senha_portal', None)
        empresas.append(empresa)
    return jsonify({"ok": True, "empresas": empresas})

@app.route('/api/empresas', methods=['POST'])
def nova_empresa():
    body = request.get_json(silent=True) or {}
    if not body.get('nome') or not body.get('cnpj'):
        return jsonify({"ok": False, "error": "Nome e CNPJ são obrigatórios."}), 400
    dados = {
        'nome': body['nome'],
        'cnpj': body['cnpj'],
        'login_portal': body.get('loginPortal'),
        'senha_portal': body.get('senhaPortal'),
        'municipio': body.get('municipio', ''),
    }
    try:
        empresa = db.adicionar_empresa(dados, _usuario_email(body))
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 409
    empresa.pop('senha_portal', None)
    return jsonify({"ok": True, "empresa": empresa}), 201

@app.route('/api/empresas/<empresa_id>', methods=['DELETE'])
def excluir_empresa(empresa_id):
    if not db.remover_empresa(empresa_id, _usuario_email()):
        return jsonify({"ok": False, "error": "Empresa não encontrada."}), 404
    return jsonify({"ok": True})

@app.route('/api/historico', methods=['GET'])
def historico():
    try:
        limite = int(request.args.get('limite', 100))
    except ValueError:
        limite = 100
    try:
        registros = db.listar_historico(_usuario_email() or None, limite)
    except Exception as e:
        logger.log_error(f"Erro ao carregar o histórico: {e}", exc_info=sys.exc_info())
        return jsonify({"ok": False, "error": "Erro ao carregar o histórico."}), 500
    return jsonify({"ok": True, "historico": registros})

# --- Ponto de Entrada da Aplicação ---
if __name__ == '__main__':
    app.run(host='127.0.0.1', port=5000, debug=True)
