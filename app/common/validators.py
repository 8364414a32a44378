"""
Validadores e formatadores específicos para o Brasil
"""
import re


def only_digits(value: str) -> str:
    """Remove tudo o que não for dígito."""
    return re.sub(r'\D', '', value or '')


def validate_brazil_phone(phone: str) -> bool:
    """
    Valida telefone brasileiro.
    - DDD + 8 dígitos (fixo) ou DDD + 9 dígitos (celular)
    """
    return len(only_digits(phone)) in (10, 11)


def format_brazil_phone(phone: str) -> str:
    """
    Formata telefone no padrão (DD)NNNNN-NNNN, limitado a 11 dígitos.
    Aceita valores parciais (formatação progressiva).
    """
    digits = only_digits(phone)[:11]

    if not digits:
        return ''
    if len(digits) <= 2:
        return f"({digits}"
    if len(digits) <= 7:
        return f"({digits[:2]}){digits[2:]}"
    return f"({digits[:2]}){digits[2:7]}-{digits[7:]}"


def validate_cnpj(cnpj: str) -> bool:
    """
    Valida CNPJ pelo tamanho (14 dígitos).
    Os dígitos verificadores não são conferidos.
    """
    return len(only_digits(cnpj)) == 14


def format_cnpj(cnpj: str) -> str:
    """
    Formata CNPJ no padrão 00.000.000/0000-00.
    Aceita valores parciais (formatação progressiva).
    """
    digits = only_digits(cnpj)[:14]

    if not digits:
        return ''
    if len(digits) <= 2:
        return digits
    if len(digits) <= 5:
        return f"{digits[:2]}.{digits[2:]}"
    if len(digits) <= 8:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:]}"
    if len(digits) <= 12:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:]}"
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
