# nsrloja/core/validadores.py
"""
Validações puras (sem rede e sem banco) usadas tanto pelo backend quanto pelo
cliente do checkout: CEP, CPF, número de cartão (Luhn) e bandeira.
"""
import re
from typing import Optional


# Ordem importa: a primeira bandeira cujo padrão casar é a escolhida.
# Elo vem antes de Visa porque vários BINs Elo começam com 4.
BANDEIRAS_CARTAO = [
    ("elo", re.compile(r"^(4011|4312|4389|4514|4573|5041|5066|5067|5090|6277|6362|6363|6504|6505|6516)")),
    ("visa", re.compile(r"^4")),
    ("mastercard", re.compile(r"^5[1-5]")),
    ("amex", re.compile(r"^3[47]")),
    ("hipercard", re.compile(r"^(38|60)")),
]


def somente_digitos(valor: Optional[str]) -> str:
    """Remove tudo que não for dígito."""
    return re.sub(r"\D", "", valor or "")


def limpar_numero_cartao(numero: Optional[str]) -> str:
    """Remove espaços e hífens do número digitado."""
    return re.sub(r"[\s-]", "", numero or "")


# ====================================================================
# CEP
# ====================================================================

def normalizar_cep(cep: Optional[str]) -> str:
    return somente_digitos(cep)


def cep_valido(cep: Optional[str]) -> bool:
    """CEP válido = exatamente 8 dígitos após remover a formatação."""
    return len(normalizar_cep(cep)) == 8


# ====================================================================
# CARTÃO
# ====================================================================

def validar_luhn(numero: Optional[str]) -> bool:
    """Algoritmo de Luhn (mod 10) sobre o número do cartão."""
    limpo = limpar_numero_cartao(numero)
    if not limpo or not limpo.isdigit():
        return False

    soma = 0
    dobrar = False
    for digito in reversed(limpo):
        valor = int(digito)
        if dobrar:
            valor *= 2
            if valor > 9:
                valor -= 9
        soma += valor
        dobrar = not dobrar

    return soma % 10 == 0


def detectar_bandeira(numero: Optional[str]) -> Optional[str]:
    """Retorna a bandeira pelo prefixo do número ou None quando desconhecida."""
    limpo = limpar_numero_cartao(numero)
    for nome, padrao in BANDEIRAS_CARTAO:
        if padrao.match(limpo):
            return nome
    return None


def formatar_numero_cartao(numero: Optional[str]) -> str:
    """Agrupa os dígitos de 4 em 4: '4539620659922097' -> '4539 6206 5992 2097'."""
    digitos = somente_digitos(numero)
    return " ".join(digitos[i:i + 4] for i in range(0, len(digitos), 4))


# ====================================================================
# CPF
# ====================================================================

def _digito_verificador(digitos: str, peso_inicial: int) -> int:
    soma = sum(int(d) * peso for d, peso in zip(digitos, range(peso_inicial, 1, -1)))
    digito = 11 - (soma % 11)
    return 0 if digito >= 10 else digito


def validar_cpf(cpf: Optional[str]) -> bool:
    """
    Validação de CPF em duas passadas mod-11: primeiro sobre os 9 primeiros
    dígitos (pesos 10..2), depois sobre os 10 primeiros (pesos 11..2).
    Sequências de dígitos iguais (ex: 11111111111) são sempre inválidas.
    """
    digitos = somente_digitos(cpf)
    if len(digitos) != 11:
        return False
    if digitos == digitos[0] * 11:
        return False

    if _digito_verificador(digitos[:9], 10) != int(digitos[9]):
        return False
    return _digito_verificador(digitos[:10], 11) == int(digitos[10])


def formatar_cpf(cpf: Optional[str]) -> str:
    """Formata como ###.###.###-## (entradas incompletas voltam só com dígitos)."""
    digitos = somente_digitos(cpf)
    if len(digitos) != 11:
        return digitos
    return f"{digitos[:3]}.{digitos[3:6]}.{digitos[6:9]}-{digitos[9:]}"
