#--------------------------------------------------------------------------
# gestor_db.py - v2.0 Histórico de execuções e empresas por usuário
#--------------------------------------------------------------------------
import json
import os
import sqlite3
import uuid
from datetime import datetime
from typing import Dict, List, Optional

# --- Configuração do Caminho Absoluto ---
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
DB_PATH = os.getenv("NFSE_DB_PATH") or os.path.join(SCRIPT_DIR, "dados", "nfse.db")

def _migration_add_usuario_email(con: sqlite3.Connection):
    """Bases antigas do histórico não tinham a coluna 'usuario_email'."""
    cur = con.cursor()
    cur.execute("PRAGMA table_info(historico_execucoes)")
    columns = [row[1] for row in cur.fetchall()]
    if 'usuario_email' not in columns:
        cur.execute("ALTER TABLE historico_execucoes ADD COLUMN usuario_email TEXT DEFAULT ''")
        con.commit()

def initialize_db():
    """Cria as tabelas de histórico e de empresas."""
    os.makedirs(os.path.dirname(os.path.abspath(DB_PATH)), exist_ok=True)

    con = sqlite3.connect(DB_PATH)
    cur = con.cursor()
    cur.execute("""
        CREATE TABLE IF NOT EXISTS historico_execucoes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            empresa_id TEXT,
            empresa_nome TEXT,
            tipo TEXT,
            data_hora TEXT,
            total_arquivos INTEGER,
            status TEXT,
            erros TEXT,
            detalhes TEXT
        )
    """)
    cur.execute("""
        CREATE TABLE IF NOT EXISTS empresas (
            id TEXT PRIMARY KEY,
            usuario_email TEXT NOT NULL DEFAULT '',
            nome TEXT NOT NULL,
            cnpj TEXT NOT NULL,
            login_portal TEXT,
            senha_portal TEXT,
            municipio TEXT DEFAULT '',
            UNIQUE (usuario_email, cnpj)
        )
    """)
    con.commit()

    _migration_add_usuario_email(con)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_hist_usuario_data ON historico_execucoes(usuario_email, data_hora)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_hist_empresa_data ON historico_execucoes(empresa_id, data_hora)")
    con.commit()
    con.close()

def get_connection():
    con = sqlite3.connect(DB_PATH)
    con.row_factory = sqlite3.Row
    return con

# --- Histórico de execuções ---

def registrar_execucao(usuario_email: str, empresa_id: Optional[str], empresa_nome: Optional[str], tipo: str,
                       total_arquivos: int, status: str, erros: Optional[List[Dict]] = None,
                       detalhes: str = "") -> int:
    """Grava uma execução do robô e devolve o id do registro."""
    con = get_connection()
    try:
        cur = con.cursor()
        cur.execute(
            """INSERT INTO historico_execucoes
               (usuario_email, empresa_id, empresa_nome, tipo, data_hora, total_arquivos, status, erros, detalhes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                usuario_email or "", empresa_id, empresa_nome, tipo,
                datetime.now().isoformat(timespec="seconds"), total_arquivos, status,
                json.dumps(erros, ensure_ascii=False) if erros else None, detalhes,
            )
        )
        con.commit()
        return cur.lastrowid
    finally:
        con.close()

def listar_historico(usuario_email: Optional[str] = None, limite: int = 100) -> List[Dict]:
    con = get_connection()
    try:
        cur = con.cursor()
        if usuario_email:
            cur.execute(
                "SELECT * FROM historico_execucoes WHERE usuario_email = ? ORDER BY id DESC LIMIT ?",
                (usuario_email, limite)
            )
        else:
            cur.execute("SELECT * FROM historico_execucoes ORDER BY id DESC LIMIT ?", (limite,))
        registros = []
        for row in cur.fetchall():
            registro = dict(row)
            registro['erros'] = json.loads(registro['erros']) if registro['erros'] else None
            registros.append(registro)
        return registros
    finally:
        con.close()

# --- Empresas (CRUD por usuário) ---

def listar_empresas(usuario_email: str = "") -> List[sqlite3.Row]:
    con = get_connection()
    cur = con.cursor()
    cur.execute(
        "SELECT id, nome, cnpj, login_portal, senha_portal, municipio FROM empresas "
        "WHERE usuario_email = ? ORDER BY nome",
        (usuario_email or "",)
    )
    empresas = cur.fetchall()
    con.close()
    return empresas

def adicionar_empresa(dados: Dict, usuario_email: str = "") -> Dict:
    """Adiciona uma empresa para o usuário. CNPJ repetido para o mesmo usuário é recusado."""
    empresa = {
        'id': dados.get('id') or uuid.uuid4().hex[:12],
        'nome': dados['nome'],
        'cnpj': dados['cnpj'],
        'login_portal': dados.get('login_portal') or None,
        'senha_portal': dados.get('senha_portal') or None,
        'municipio': dados.get('municipio', ''),
    }
    con = get_connection()
    cur = con.cursor()
    try:
        cur.execute(
            "INSERT INTO empresas (id, usuario_email, nome, cnpj, login_portal, senha_portal, municipio) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                empresa['id'], usuario_email or "", empresa['nome'], empresa['cnpj'],
                empresa['login_portal'], empresa['senha_portal'], empresa['municipio'],
            )
        )
        con.commit()
    except sqlite3.IntegrityError as e:
        if "empresas.id" in str(e):
            raise ValueError(f"O ID '{empresa['id']}' já está em uso.")
        raise ValueError(f"O CNPJ {empresa['cnpj']} já está cadastrado.")
    finally:
        con.close()
    return empresa

def remover_empresa(empresa_id: str, usuario_email: str = "") -> bool:
    con = get_connection()
    cur = con.cursor()
    cur.execute("DELETE FROM empresas WHERE id = ? AND usuario_email = ?", (empresa_id, usuario_email or ""))
    con.commit()
    removidas = cur.rowcount
    con.close()
    return removidas > 0

initialize_db()
