"""
Testes dos validadores brasileiros e da tradução de erros
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.common.errors import (
    DEFAULT_ERROR_MESSAGE, EMPTY_ERROR_MESSAGE, translate_error_message, persistence_error
)
from app.common.validators import (
    only_digits, validate_brazil_phone, format_brazil_phone, validate_cnpj, format_cnpj
)


class TestValidators:
    """Testes de telefone e CNPJ"""

    def test_only_digits(self):
        assert only_digits("(11) 98765-4321") == "11987654321"
        assert only_digits(None) == ""

    @pytest.mark.parametrize("phone,valid", [
        ("1133334444", True),
        ("11987654321", True),
        ("(11) 98765-4321", True),
        ("987654321", False),
        ("119876543210", False),
    ])
    def test_validate_phone(self, phone, valid):
        assert validate_brazil_phone(phone) is valid

    @pytest.mark.parametrize("raw,formatted", [
        ("", ""),
        ("1", "(1"),
        ("11987", "(11)987"),
        ("11987654321", "(11)98765-4321"),
        ("1198765432199", "(11)98765-4321"),
    ])
    def test_format_phone_progressively(self, raw, formatted):
        assert format_brazil_phone(raw) == formatted

    def test_validate_cnpj(self):
        assert validate_cnpj("12.345.678/0001-95")
        assert not validate_cnpj("1234567800019")

    @pytest.mark.parametrize("raw,formatted", [
        ("12", "12"),
        ("12345", "12.345"),
        ("12345678", "12.345.678"),
        ("123456780001", "12.345.678/0001"),
        ("12345678000195", "12.345.678/0001-95"),
    ])
    def test_format_cnpj_progressively(self, raw, formatted):
        assert format_cnpj(raw) == formatted


class TestErrorTranslation:
    """Testes da tradução de mensagens de erro"""

    def test_known_messages(self):
        assert translate_error_message(Exception('duplicate key value violates unique constraint "x"')) == \
            "Este registro já existe."
        assert translate_error_message("User not authenticated") == \
            "Usuário não autenticado. Faça login novamente."
        assert translate_error_message(Exception("FOREIGN KEY constraint failed")) == \
            "Não é possível excluir este item pois está sendo usado."

    def test_unknown_and_empty(self):
        assert translate_error_message(Exception("something odd")) == DEFAULT_ERROR_MESSAGE
        assert translate_error_message(None) == EMPTY_ERROR_MESSAGE

    def test_persistence_error_uses_original_driver_error(self):
        error = IntegrityError("DELETE FROM banks", {}, Exception("FOREIGN KEY constraint failed"))

        http_error = persistence_error(error)

        assert http_error.status_code == 409
        assert http_error.detail == "Não é possível excluir este item pois está sendo usado."

    def test_persistence_error_defaults_to_500(self):
        http_error = persistence_error(RuntimeError("disk full"))

        assert http_error.status_code == 500
        assert http_error.detail == DEFAULT_ERROR_MESSAGE
