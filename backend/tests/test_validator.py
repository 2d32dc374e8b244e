from datetime import date

from solicitudes_api.models.form_schemas import SOLICITUD_V1, SOLICITUD_V2
from solicitudes_api.services.validator import (
    age_on,
    parse_bool,
    parse_date,
    validate_solicitud,
    validate_update,
)

TODAY = date(2024, 6, 15)


def issues_by_field(result):
    return {issue.field: issue for issue in result.issues if issue.field}


def test_valid_v2_form_is_coerced(valid_v2_form):
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)

    assert result.is_valid
    assert result.issues == []
    assert result.data["autorizacionTratamientoDatos"] is True
    assert result.data["autorizacionContacto"] is False
    assert result.data["referencia"] is None
    assert result.data["nombreCompleto"] == "Ana Maria Gomez"


def test_validation_does_not_mutate_input(valid_v2_form):
    original = dict(valid_v2_form)
    validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert valid_v2_form == original


def test_missing_fields_reported_together_in_schema_order(valid_v2_form):
    del valid_v2_form["nombreCompleto"]
    del valid_v2_form["email"]
    valid_v2_form["celularNegocio"] = "   "

    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)

    assert not result.is_valid
    missing = [i for i in result.issues if i.kind == "missing_fields"]
    assert len(missing) == 1
    assert missing[0].fields == ["email", "nombreCompleto", "celularNegocio"]
    assert missing[0].to_dict()["type"] == "missing_fields"


def test_false_authorization_counts_as_present(valid_v2_form):
    valid_v2_form["autorizacionTratamientoDatos"] = False
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert result.is_valid


def test_invalid_boolean_string(valid_v2_form):
    valid_v2_form["autorizacionContacto"] = "quizas"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert issues_by_field(result)["autorizacionContacto"].kind == "invalid_format"


def test_invalid_email_and_document_type_accumulate(valid_v2_form):
    valid_v2_form["email"] = "ana@@example"
    valid_v2_form["tipoDocumento"] = "TI"

    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)

    by_field = issues_by_field(result)
    assert by_field["email"].message == "El formato del email es inválido"
    assert by_field["tipoDocumento"].kind == "invalid_value"
    assert by_field["tipoDocumento"].to_dict()["validValues"] == ["CC", "CE", "PA", "PEP", "PPP"]


def test_applicant_exactly_eighteen_today_is_accepted(valid_v2_form):
    valid_v2_form["fechaNacimiento"] = "2006-06-15"
    assert validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY).is_valid


def test_applicant_one_day_short_of_eighteen_is_rejected(valid_v2_form):
    valid_v2_form["fechaNacimiento"] = "2006-06-16"

    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)

    issue = issues_by_field(result)["fechaNacimiento"]
    assert issue.kind == "invalid_value"
    assert issue.message == "El solicitante debe ser mayor de 18 años"


def test_birth_date_today_is_rejected_once(valid_v2_form):
    valid_v2_form["fechaNacimiento"] = TODAY.isoformat()

    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)

    birth_issues = [i for i in result.issues if i.field == "fechaNacimiento"]
    assert len(birth_issues) == 1
    assert "anterior a hoy" in birth_issues[0].message


def test_impossible_calendar_date_is_invalid_format(valid_v2_form):
    valid_v2_form["fechaNacimiento"] = "1990-02-30"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert issues_by_field(result)["fechaNacimiento"].kind == "invalid_format"


def test_issue_date_today_accepted_future_rejected(valid_v2_form):
    valid_v2_form["fechaExpedicionDocumento"] = TODAY.isoformat()
    assert validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY).is_valid

    valid_v2_form["fechaExpedicionDocumento"] = "2024-06-16"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert "no puede ser futura" in issues_by_field(result)["fechaExpedicionDocumento"].message


def test_referencia_must_be_integer(valid_v2_form):
    valid_v2_form["referencia"] = "12a"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert issues_by_field(result)["referencia"].kind == "invalid_format"

    valid_v2_form["referencia"] = "42"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert result.data["referencia"] == 42


def test_v1_valid_form_coerces_numbers(valid_v1_form):
    result = validate_solicitud(valid_v1_form, SOLICITUD_V1, today=TODAY)

    assert result.is_valid
    assert result.data["ingresosMensuales"] == 4500000.0
    assert result.data["plazoMeses"] == "24"
    assert result.data["montoDeudas"] is None


def test_v1_debt_amount_required_when_has_debts(valid_v1_form):
    valid_v1_form["tieneDeudas"] = "si"

    result = validate_solicitud(valid_v1_form, SOLICITUD_V1, today=TODAY)

    assert result.issues[0].kind == "missing_fields"
    assert result.issues[0].fields == ["montoDeudas"]

    valid_v1_form["montoDeudas"] = "0"
    result = validate_solicitud(valid_v1_form, SOLICITUD_V1, today=TODAY)
    assert result.is_valid
    assert result.data["montoDeudas"] == 0.0


def test_v1_debt_amount_dropped_when_no_debts(valid_v1_form):
    valid_v1_form["montoDeudas"] = "-5"
    result = validate_solicitud(valid_v1_form, SOLICITUD_V1, today=TODAY)
    assert result.is_valid
    assert result.data["montoDeudas"] is None


def test_v1_non_positive_amount(valid_v1_form):
    valid_v1_form["montoSolicitado"] = 0
    valid_v1_form["plazoMeses"] = "18"

    result = validate_solicitud(valid_v1_form, SOLICITUD_V1, today=TODAY)

    by_field = issues_by_field(result)
    assert by_field["montoSolicitado"].message == "El monto solicitado debe ser un número positivo"
    assert by_field["plazoMeses"].valid_values == ["12", "24", "36", "48", "60", "72"]


def test_update_skips_completeness_and_keeps_only_sent_fields():
    result = validate_update({"ciudadNegocio": "  Cali "}, SOLICITUD_V2, today=TODAY)
    assert result.is_valid
    assert result.data == {"ciudadNegocio": "Cali"}


def test_update_validates_format_and_estado():
    result = validate_update({"email": "sin-arroba", "estado": "cerrado"}, SOLICITUD_V2, today=TODAY)

    by_field = issues_by_field(result)
    assert not result.is_valid
    assert set(by_field) == {"email", "estado"}
    assert "aprobado" in by_field["estado"].valid_values

    result = validate_update({"estado": "aprobado"}, SOLICITUD_V2, today=TODAY)
    assert result.data == {"estado": "aprobado"}


def test_helpers():
    assert parse_bool("TRUE") is True
    assert parse_bool("no") is None
    assert parse_date("2024-13-01") is None
    assert age_on(date(2000, 2, 29), date(2018, 2, 28)) == 17
    assert age_on(date(2000, 2, 29), date(2018, 3, 1)) == 18


def test_validation_is_repeatable(valid_v2_form):
    valid_v2_form["email"] = "x@"
    first = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    second = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert first.issues_as_dicts() == second.issues_as_dicts()


def test_update_keeps_debt_amount_without_condition_field():
    result = validate_update({"montoDeudas": "500000"}, SOLICITUD_V1, today=TODAY)
    assert result.is_valid
    assert result.data == {"montoDeudas": 500000.0}


def test_update_range_checks_debt_amount_without_condition_field():
    result = validate_update({"montoDeudas": "-5"}, SOLICITUD_V1, today=TODAY)
    assert not result.is_valid
    assert issues_by_field(result)["montoDeudas"].kind == "invalid_format"


def test_update_drops_debt_amount_when_condition_sent_and_false():
    result = validate_update({"tieneDeudas": "no", "montoDeudas": "5"}, SOLICITUD_V1, today=TODAY)
    assert result.is_valid
    assert result.data == {"tieneDeudas": "no", "montoDeudas": None}


def test_email_with_trailing_newline_is_rejected(valid_v2_form):
    valid_v2_form["email"] = "ana@example.com\n"
    result = validate_solicitud(valid_v2_form, SOLICITUD_V2, today=TODAY)
    assert issues_by_field(result)["email"].kind == "invalid_format"
