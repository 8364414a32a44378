"""
Tradução de mensagens de erro para o usuário (pt-BR)

Erros de persistência e autenticação chegam com mensagens técnicas em inglês
(driver do banco, PyJWT, etc.). A tradução é feita por busca de substrings
numa tabela fixa, na ordem em que aparecem.
"""
from typing import Optional

from fastapi import HTTPException, status

DEFAULT_ERROR_MESSAGE = "Ocorreu um erro inesperado. Tente novamente."
EMPTY_ERROR_MESSAGE = "Ocorreu um erro inesperado"

ERROR_TRANSLATIONS = [
    # Autenticação
    (("Invalid login credentials",), "Credenciais de login inválidas. Verifique seu e-mail e senha."),
    (("Email not confirmed",), "E-mail não confirmado. Verifique sua caixa de entrada."),
    (("User already registered",), "Usuário já cadastrado com este e-mail."),
    (("Password should be at least",), "A senha deve ter pelo menos 6 caracteres."),
    (("Invalid email",), "E-mail inválido. Verifique o formato do e-mail."),
    (("Network request failed", "fetch", "could not connect", "timeout"),
     "Erro de conexão. Verifique sua internet e tente novamente."),
    (("User not authenticated",), "Usuário não autenticado. Faça login novamente."),
    # Banco de dados
    (("duplicate key value", "UNIQUE constraint failed"), "Este registro já existe."),
    (("foreign key constraint", "FOREIGN KEY constraint failed"),
     "Não é possível excluir este item pois está sendo usado."),
    (("permission denied", "insufficient_privilege"), "Você não tem permissão para realizar esta ação."),
    (("null value in column", "NOT NULL constraint failed"), "Todos os campos obrigatórios devem ser preenchidos."),
    # Rate limiting
    (("rate limit", "too many requests"), "Muitas tentativas. Aguarde alguns minutos antes de tentar novamente."),
]


def translate_error_message(error: Optional[object]) -> str:
    """
    Traduz uma exceção (ou mensagem) para uma mensagem amigável em português.
    """
    if error is None:
        return EMPTY_ERROR_MESSAGE

    message = str(getattr(error, "orig", None) or error)

    for needles, translated in ERROR_TRANSLATIONS:
        if any(needle in message for needle in needles):
            return translated

    return DEFAULT_ERROR_MESSAGE


def is_constraint_violation(error: Optional[object]) -> bool:
    """Indica se o erro é de integridade referencial ou de unicidade."""
    if error is None:
        return False
    message = str(getattr(error, "orig", None) or error)
    return any(
        needle in message
        for needle in ("foreign key constraint", "FOREIGN KEY constraint failed",
                       "duplicate key value", "UNIQUE constraint failed")
    )


def persistence_error(error: Exception) -> HTTPException:
    """
    Converte um erro de persistência em HTTPException com mensagem traduzida.
    Violações de integridade viram 409; o resto, 500.
    """
    if is_constraint_violation(error):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=translate_error_message(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=translate_error_message(error))
