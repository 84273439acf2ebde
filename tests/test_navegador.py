import pytest
from playwright.sync_api import Error as PWError, TimeoutError as PWTimeoutError

from modulos.navegador import ErroAcao, aguardar_evento, localizar

from portal_fake import FakeElemento, FakeExpectativa


class RaizComErro(FakeElemento):
    def query_selector(self, seletor):
        if seletor == "seletor:invalido":
            raise PWError("Unexpected token")
        return super().query_selector(seletor)


def test_localizar_primeiro_seletor_que_existe_vence():
    primeiro, segundo = FakeElemento(texto="1"), FakeElemento(texto="2")
    raiz = FakeElemento(filhos={"#b": primeiro, "#c": segundo})

    assert localizar(raiz, ["#a", "#b", "#c"]) is primeiro
    assert localizar(raiz, ["#c", "#b"]) is segundo


def test_localizar_sem_correspondencia_devolve_none():
    assert localizar(FakeElemento(), ["#a", "#b"]) is None
    assert localizar(FakeElemento(), []) is None


def test_localizar_ignora_seletor_que_o_navegador_rejeita():
    alvo = FakeElemento()
    raiz = RaizComErro(filhos={"#ok": alvo})
    assert localizar(raiz, ["seletor:invalido", "#ok"]) is alvo


def test_localizar_espera_o_elemento_aparecer():
    alvo = FakeElemento()
    raiz = FakeElemento()
    consultas = []

    def consultar(seletor):
        consultas.append(seletor)
        return alvo if len(consultas) >= 3 else None
    raiz.query_selector = consultar

    assert localizar(raiz, ["#a"], timeout_ms=5000) is alvo
    assert len(consultas) == 3


def test_aguardar_evento_devolve_valor_ou_none():
    acoes = []
    assert aguardar_evento(FakeExpectativa(lambda: "download"), lambda: acoes.append(1)) == "download"
    assert aguardar_evento(FakeExpectativa(lambda: None), lambda: acoes.append(2)) is None
    assert acoes == [1, 2]


def test_falha_do_proprio_clique_nao_vira_evento_ausente():
    def clique_que_falha():
        raise PWTimeoutError("Timeout 30000ms exceeded. element is not attached to the DOM")

    with pytest.raises(ErroAcao, match="not attached"):
        aguardar_evento(FakeExpectativa(lambda: "download"), clique_que_falha)
