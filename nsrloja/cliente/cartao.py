# nsrloja/cliente/cartao.py
"""
Criptografia do cartão no lado do cliente.

O número e o CVV nunca saem daqui em claro: o payload
"numero;cvv;mes;ano;titular;timestamp" é cifrado com a chave pública RSA do
PagBank (PKCS#1 v1.5) e só o texto cifrado em base64 segue para o backend.
"""
import base64
import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from decouple import config

from nsrloja.core.entities import CartaoCriptografado
from nsrloja.core.exceptions import PagamentoFalhouError
from nsrloja.core.validadores import limpar_numero_cartao, somente_digitos, validar_cpf, validar_luhn

logger = logging.getLogger(__name__)

URLS_PAGBANK = {
    'sandbox': 'https://sandbox.api.pagseguro.com',
    'production': 'https://api.pagseguro.com',
}


@dataclass
class DadosCartao:
    numero: str
    titular: str
    mes_expiracao: str
    ano_expiracao: str
    cvv: str
    cpf_titular: str


# ====================================================================
# FUNÇÕES AUXILIARES
# ====================================================================

def carregar_chave_publica(texto: str):
    """Aceita PEM ou a chave DER em base64 (formato devolvido pelo PagBank)."""
    texto = texto.strip()
    if texto.startswith('-----BEGIN'):
        return serialization.load_pem_public_key(texto.encode('ascii'))
    return serialization.load_der_public_key(base64.b64decode(texto))


def buscar_chave_publica_pagbank() -> str:
    ambiente = config('PAGBANK_ENV', default='sandbox')
    url = f"{URLS_PAGBANK.get(ambiente, URLS_PAGBANK['sandbox'])}/public-keys/card"
    headers = {'Authorization': f"Bearer {config('PAGBANK_TOKEN', default='')}"}
    response = requests.get(url, headers=headers, timeout=config('NSR_API_TIMEOUT', default=30, cast=int))
    response.raise_for_status()
    return response.json()['public_key']


def _normalizar_ano(ano: str) -> Optional[int]:
    digitos = somente_digitos(ano)
    if len(digitos) == 2:
        return 2000 + int(digitos)
    if len(digitos) == 4:
        return int(digitos)
    return None


def validar_dados_cartao(dados: DadosCartao, hoje: Optional[date] = None) -> List[dict]:
    """Devolve a lista de erros por campo; lista vazia significa cartão válido."""
    hoje = hoje or date.today()
    erros = []

    numero = limpar_numero_cartao(dados.numero)
    if not (13 <= len(numero) <= 19) or not validar_luhn(numero):
        erros.append({'campo': 'numero', 'mensagem': 'Número do cartão inválido'})

    cvv = (dados.cvv or '').strip()
    if not cvv.isdigit() or len(cvv) not in (3, 4):
        erros.append({'campo': 'cvv', 'mensagem': 'CVV inválido'})

    mes = somente_digitos(dados.mes_expiracao)
    ano = _normalizar_ano(dados.ano_expiracao)
    if not mes or not 1 <= int(mes) <= 12 or ano is None:
        erros.append({'campo': 'validade', 'mensagem': 'Data de validade inválida'})
    elif (ano, int(mes)) < (hoje.year, hoje.month):
        erros.append({'campo': 'validade', 'mensagem': 'Cartão expirado'})

    if not (dados.titular or '').strip():
        erros.append({'campo': 'titular', 'mensagem': 'Nome do titular é obrigatório'})

    if not validar_cpf(dados.cpf_titular):
        erros.append({'campo': 'cpf', 'mensagem': 'CPF do titular inválido'})

    return erros


# ====================================================================
# SDK DE CRIPTOGRAFIA
# ====================================================================

class EstadoSdk:
    DESCARREGADO = 'descarregado'
    CARREGANDO = 'carregando'
    PRONTO = 'pronto'
    FALHOU = 'falhou'


class SdkCriptografiaPagBank:
    """
    Handle do SDK de criptografia.

    descarregado -> carregando -> pronto | falhou

    Chamadas concorrentes de `garantir_pronto` durante o carregamento esperam
    o mesmo carregamento. Depois de 'falhou', a próxima chamada tenta de novo.
    """

    def __init__(self, chave_publica: Optional[str] = None,
                 buscar_chave: Optional[Callable[[], str]] = None):
        self._chave_configurada = chave_publica if chave_publica is not None else config(
            'PAGBANK_PUBLIC_KEY', default=''
        )
        self._buscar_chave = buscar_chave or buscar_chave_publica_pagbank
        self._lock = threading.Lock()
        self._carregado = threading.Event()
        self._estado = EstadoSdk.DESCARREGADO
        self._chave = None
        self._erro: Optional[Exception] = None

    @property
    def estado(self) -> str:
        with self._lock:
            return self._estado

    def _carregar(self):
        texto = self._chave_configurada or self._buscar_chave()
        if not texto:
            raise ValueError('Chave pública do PagBank não configurada')
        return carregar_chave_publica(texto)

    def garantir_pronto(self, timeout: Optional[float] = None):
        with self._lock:
            if self._estado == EstadoSdk.PRONTO:
                return self._chave
            carregar = self._estado != EstadoSdk.CARREGANDO
            if carregar:
                self._estado = EstadoSdk.CARREGANDO
                self._carregado = threading.Event()
            evento = self._carregado

        if carregar:
            try:
                chave = self._carregar()
            except Exception as e:
                logger.error("Falha ao carregar o SDK do PagBank: %s", e)
                with self._lock:
                    self._estado = EstadoSdk.FALHOU
                    self._erro = e
                evento.set()
                raise PagamentoFalhouError(f"Falha ao carregar o SDK do PagBank: {e}") from e

            with self._lock:
                self._chave = chave
                self._erro = None
                self._estado = EstadoSdk.PRONTO
            evento.set()
            logger.info("SDK do PagBank pronto")
            return chave

        if not evento.wait(timeout):
            raise PagamentoFalhouError("Tempo esgotado aguardando o SDK do PagBank")
        with self._lock:
            if self._estado != EstadoSdk.PRONTO:
                raise PagamentoFalhouError(f"Falha ao carregar o SDK do PagBank: {self._erro}")
            return self._chave

    def criptografar(self, dados: DadosCartao, chave_publica: Optional[str] = None) -> CartaoCriptografado:
        erros = validar_dados_cartao(dados)
        if erros:
            raise PagamentoFalhouError(
                "Erro ao criptografar cartão: " + ", ".join(e['mensagem'] for e in erros),
                erros=erros,
            )

        chave = carregar_chave_publica(chave_publica) if chave_publica else self.garantir_pronto()

        titular = dados.titular.strip()
        ano = _normalizar_ano(dados.ano_expiracao)
        payload = ";".join([
            limpar_numero_cartao(dados.numero),
            dados.cvv.strip(),
            somente_digitos(dados.mes_expiracao).zfill(2),
            str(ano),
            titular,
            str(int(time.time() * 1000)),
        ])
        cifrado = chave.encrypt(payload.encode('utf-8'), padding.PKCS1v15())

        return CartaoCriptografado(
            criptografado=base64.b64encode(cifrado).decode('ascii'),
            nome_titular=titular,
            cpf_titular=somente_digitos(dados.cpf_titular),
        )


_sdk: Optional[SdkCriptografiaPagBank] = None
_sdk_lock = threading.Lock()


def obter_sdk() -> SdkCriptografiaPagBank:
    """Instância única do SDK para o processo."""
    global _sdk
    with _sdk_lock:
        if _sdk is None:
            _sdk = SdkCriptografiaPagBank()
        return _sdk
