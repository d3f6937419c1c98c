import copy
import io
import itertools
import re
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from pypdf import PdfWriter

from smartapolice.config import limpar_cache_config

JWT_SECRET_TESTE = "segredo-de-teste-com-tamanho-suficiente"

# Tabela embutida no select -> coluna de chave estrangeira na tabela consultada
CHAVES_ESTRANGEIRAS = {
    "apolices": "apolice_id",
    "frota_veiculos": "vehicle_id",
}


# ============================================================
# SUPABASE FALSO EM MEMÓRIA
# ============================================================

class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


def _contem(valor, padrao: str) -> bool:
    trecho = padrao.strip("%").lower()
    return valor is not None and trecho in str(valor).lower()


def _chave_ordem(valor):
    return (valor is None, str(valor) if valor is not None else "")


class _Negacao:
    def __init__(self, query):
        self.query = query

    def is_(self, coluna, valor):
        if valor == "null":
            self.query.filtros.append(lambda r: r.get(coluna) is not None)
        else:
            self.query.filtros.append(lambda r: r.get(coluna) != valor)
        return self.query


class FakeQuery:
    def __init__(self, banco, tabela):
        self.banco = banco
        self.tabela = tabela
        self.operacao = "select"
        self.colunas = "*"
        self.payload = None
        self.filtros = []
        self.ordem = []
        self.limite = None
        self.contar = None

    # --- operações ---
    def select(self, colunas="*", count=None):
        self.colunas = colunas
        self.contar = count
        return self

    def insert(self, payload):
        self.operacao, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.operacao, self.payload = "update", payload
        return self

    def delete(self):
        self.operacao = "delete"
        return self

    # --- filtros ---
    def _valor(self, linha, coluna):
        # "tabela.coluna" filtra pela linha embutida, como no PostgREST
        if "." not in coluna:
            return linha.get(coluna)
        tabela, campo = coluna.split(".", 1)
        fk = CHAVES_ESTRANGEIRAS[tabela]
        relacionado = next((r for r in self.banco.tabelas.get(tabela, []) if r.get("id") == linha.get(fk)), None)
        return relacionado.get(campo) if relacionado else None

    def eq(self, coluna, valor):
        self.filtros.append(lambda r: self._valor(r, coluna) == valor)
        return self

    def neq(self, coluna, valor):
        self.filtros.append(lambda r: r.get(coluna) != valor)
        return self

    def in_(self, coluna, valores):
        valores = list(valores)
        self.filtros.append(lambda r: r.get(coluna) in valores)
        return self

    def ilike(self, coluna, padrao):
        self.filtros.append(lambda r: _contem(r.get(coluna), padrao))
        return self

    def gte(self, coluna, valor):
        self.filtros.append(lambda r: r.get(coluna) is not None and str(r.get(coluna)) >= str(valor))
        return self

    def lt(self, coluna, valor):
        self.filtros.append(lambda r: r.get(coluna) is not None and str(r.get(coluna)) < str(valor))
        return self

    def or_(self, expressao):
        condicoes = []
        for parte in expressao.split(","):
            coluna, operador, valor = parte.split(".", 2)
            condicoes.append((coluna, operador, valor))

        def algum(r):
            for coluna, operador, valor in condicoes:
                if operador == "ilike" and _contem(r.get(coluna), valor):
                    return True
                if operador == "eq" and str(r.get(coluna)) == valor:
                    return True
            return False

        self.filtros.append(algum)
        return self

    @property
    def not_(self):
        return _Negacao(self)

    def order(self, coluna, desc=False):
        self.ordem.append((coluna, desc))
        return self

    def limit(self, n):
        self.limite = n
        return self

    # --- execução ---
    def _linhas(self):
        return self.banco.tabelas.setdefault(self.tabela, [])

    def _filtradas(self):
        return [r for r in self._linhas() if all(f(r) for f in self.filtros)]

    def _embutir(self, linhas):
        for nome, inner, colunas in re.findall(r"(\w+)(!inner)?\(([^)]*)\)", self.colunas):
            fk = CHAVES_ESTRANGEIRAS[nome]
            campos = [c.strip() for c in colunas.split(",") if c.strip()]
            resultado = []
            for linha in linhas:
                relacionado = next((r for r in self.banco.tabelas.get(nome, []) if r.get("id") == linha.get(fk)),
                                   None)
                if relacionado is None and inner:
                    continue
                linha[nome] = {c: relacionado.get(c) for c in campos} if relacionado else None
                resultado.append(linha)
            linhas = resultado
        return linhas

    def execute(self):
        self.banco.consultas.append((self.tabela, self.operacao))
        if self.tabela in self.banco.falhas:
            raise self.banco.falhas[self.tabela]

        if self.operacao == "insert":
            novos = self.payload if isinstance(self.payload, list) else [self.payload]
            inseridos = []
            for registro in novos:
                linha = copy.deepcopy(registro)
                linha.setdefault("id", f"{self.tabela}-{next(self.banco.ids)}")
                linha.setdefault("created_at", datetime.now(timezone.utc).isoformat())
                self._linhas().append(linha)
                inseridos.append(copy.deepcopy(linha))
            return FakeResponse(inseridos)

        if self.operacao == "update":
            alteradas = []
            for linha in self._filtradas():
                linha.update(copy.deepcopy(self.payload))
                alteradas.append(copy.deepcopy(linha))
            return FakeResponse(alteradas)

        if self.operacao == "delete":
            removidas = self._filtradas()
            self.banco.tabelas[self.tabela] = [r for r in self._linhas() if r not in removidas]
            return FakeResponse(copy.deepcopy(removidas))

        linhas = copy.deepcopy(self._filtradas())
        for coluna, desc in reversed(self.ordem):
            linhas.sort(key=lambda r: _chave_ordem(r.get(coluna)), reverse=desc)
        linhas = self._embutir(linhas)
        if self.limite is not None:
            linhas = linhas[:self.limite]
        return FakeResponse(linhas, count=len(linhas) if self.contar else None)


class FakeRpc:
    def __init__(self, resultado):
        self.resultado = resultado

    def execute(self):
        if isinstance(self.resultado, Exception):
            raise self.resultado
        return FakeResponse(self.resultado)


class FakeAuthAdmin:
    def __init__(self):
        self.excluidos = []
        self.senhas_alteradas = {}
        self.falha_exclusao = None

    def delete_user(self, user_id):
        if self.falha_exclusao:
            raise self.falha_exclusao
        self.excluidos.append(user_id)

    def update_user_by_id(self, user_id, atributos):
        self.senhas_alteradas[user_id] = atributos.get("password")
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeAuth:
    def __init__(self):
        self.admin = FakeAuthAdmin()
        self.tokens = {}
        self.senhas = {}

    def registrar(self, token, user_id, email, senha="senha-atual", **metadata):
        usuario = SimpleNamespace(id=user_id, email=email, user_metadata=metadata)
        self.tokens[token] = usuario
        self.senhas[email] = senha
        return usuario

    def get_user(self, token):
        if token not in self.tokens:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=self.tokens[token])

    def sign_in_with_password(self, credenciais):
        if self.senhas.get(credenciais["email"]) != credenciais["password"]:
            raise Exception("Invalid login credentials")
        usuario = next(u for u in self.tokens.values() if u.email == credenciais["email"])
        return SimpleNamespace(user=usuario, session=SimpleNamespace(access_token="novo"))


class FakeBucket:
    def __init__(self, storage, nome):
        self.storage = storage
        self.nome = nome

    def upload(self, path, file, file_options=None):
        self.storage.arquivos[(self.nome, path)] = file
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://exemplo.supabase.co/storage/v1/object/public/{self.nome}/{path}"


class FakeStorage:
    def __init__(self):
        self.arquivos = {}

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self, **tabelas):
        self.tabelas = {nome: [dict(r) for r in linhas] for nome, linhas in tabelas.items()}
        self.ids = itertools.count(1)
        self.consultas = []
        self.falhas = {}
        self.rpcs = {}
        self.rpc_chamadas = []
        self.auth = FakeAuth()
        self.storage = FakeStorage()

    def table(self, nome):
        return FakeQuery(self, nome)

    def rpc(self, nome, params=None):
        self.rpc_chamadas.append((nome, params))
        return FakeRpc(self.rpcs.get(nome))


# ============================================================
# HTTP FALSO
# ============================================================

class FakeHttpResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._json = json_data
        self.text = text or ("" if json_data is None else str(json_data))

    def json(self):
        if self._json is None:
            raise ValueError("sem JSON")
        return self._json


class FakeSession:
    """Devolve as respostas enfileiradas, na ordem, e guarda cada chamada."""

    def __init__(self, *respostas):
        self.respostas = list(respostas)
        self.chamadas = []

    def _proxima(self, metodo, url, kwargs):
        self.chamadas.append((metodo, url, kwargs))
        resposta = self.respostas.pop(0)
        if isinstance(resposta, Exception):
            raise resposta
        return resposta

    def get(self, url, **kwargs):
        return self._proxima("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._proxima("POST", url, kwargs)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def config_teste(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://exemplo.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-key")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET_TESTE)
    monkeypatch.setenv("FIPE_TOKEN", "token-fipe")
    monkeypatch.setenv("BACKEND_WRITE_TOKEN", "token-backend")
    for nome in ("TICKETS_WEBHOOK_URL", "N8N_WEBHOOK_URL", "CORPNUVEM_EMAIL", "CORPNUVEM_SENHA",
                 "SUPABASE_JWT_SECRET"):
        monkeypatch.delenv(nome, raising=False)
    limpar_cache_config()
    yield
    limpar_cache_config()


@pytest.fixture
def supabase_fake():
    return FakeSupabase()


def _pdf(senha=None) -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    if senha is not None:
        writer.encrypt(senha)
    saida = io.BytesIO()
    writer.write(saida)
    return saida.getvalue()


@pytest.fixture
def pdf_simples():
    return _pdf()


@pytest.fixture
def pdf_protegido():
    return _pdf("segredo")
