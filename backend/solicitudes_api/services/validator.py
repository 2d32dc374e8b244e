"""
Modulo de validacion de solicitudes de credito.

Es la PRIMERA etapa del pipeline de creacion: ningun PDF se genera y nada
se persiste si el formulario no pasa por aqui sin errores.

Que valida?
-----------
1. Completitud: todos los campos obligatorios del FormSchema presentes.
   Los faltantes se reportan JUNTOS en un solo issue `missing_fields`.
2. Formato: email, enumeraciones, fechas YYYY-MM-DD, montos, enteros,
   booleanos. Un issue por campo invalido.
3. Semantica: nacimiento en el pasado, edad minima, expedicion no futura.

Por que acumular errores en vez de fallar en el primero?
---------------------------------------------------------
El frontend pinta todos los errores del formulario de una vez. Si
devolvieramos solo el primero, el usuario corregiria un campo por envio.

Patron de diseno: Resultado como dataclass
------------------------------------------
Igual que en el resto de servicios, no lanzamos excepciones para errores
esperados del usuario. validate_solicitud() retorna un ValidationResult:
    - is_valid: paso todas las reglas?
    - issues: lista de ValidationIssue (vacia si es valido)
    - data: el formulario con los tipos coercionados (solo si es valido)
El caller decide si convertirlo en un ValidationError HTTP 400.

La validacion es pura: no toca red ni disco, no muta la entrada y con la
misma entrada (y la misma fecha de hoy) produce exactamente los mismos issues.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from solicitudes_api.models.form_schemas import (
    ESTADOS_SOLICITUD,
    ConditionalRequirement,
    FormSchema,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MISSING_FIELDS = "missing_fields"
INVALID_FORMAT = "invalid_format"
INVALID_VALUE = "invalid_value"


@dataclass
class ValidationIssue:
    """
    Un problema encontrado en el formulario.

    Atributos:
        kind: missing_fields | invalid_format | invalid_value
            (otras etapas agregan empty_body y document_error).
        message: texto legible para el usuario.
        field: campo afectado (no aplica a missing_fields).
        valid_values: valores aceptados, solo para enumeraciones.
        fields: lista de faltantes, solo para missing_fields.
    """
    kind: str
    message: str
    field: str | None = None
    valid_values: list[str] | None = None
    fields: list[str] | None = None

    def to_dict(self) -> dict:
        # En el JSON la clave es "type", no "kind".
        out: dict[str, Any] = {"type": self.kind}
        if self.field is not None:
            out["field"] = self.field
        out["message"] = self.message
        if self.valid_values is not None:
            out["validValues"] = list(self.valid_values)
        if self.fields is not None:
            out["fields"] = list(self.fields)
        return out


@dataclass
class ValidationResult:
    """
    Resultado de validar un formulario.

    `data` solo se llena cuando is_valid es True: contiene los campos del
    esquema con los numeros convertidos (float para montos, int para
    enteros) y los booleanos normalizados.
    """
    is_valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    data: dict | None = None

    def issues_as_dicts(self) -> list[dict]:
        return [issue.to_dict() for issue in self.issues]


# ---------- Helpers de tipos ----------


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_bool(value: Any) -> bool | None:
    """
    Interpreta un booleano del formulario.

    Acepta True/False y los strings "true"/"false" (sin distinguir
    mayusculas). Cualquier otra cosa retorna None (= invalido).
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def parse_number(value: Any) -> float | None:
    """Numero finito desde int/float/str. None si no es un numero valido."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    return None


def parse_date(value: Any) -> date | None:
    """Fecha de calendario desde 'YYYY-MM-DD'. Rechaza 2023-02-30 y similares."""
    if not isinstance(value, str) or not DATE_RE.match(value.strip()):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def age_on(birth: date, today: date) -> int:
    """Edad en anos calendario cumplidos a la fecha `today`."""
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


# ---------- Reglas ----------


def _missing_fields(form: dict, schema: FormSchema) -> list[str]:
    missing = []
    for name in schema.required_fields:
        value = form.get(name)
        if name in schema.boolean_fields:
            # False es un valor presente.
            if value is None:
                missing.append(name)
        elif _is_blank(value):
            missing.append(name)

    for requirement in schema.conditional_requirements:
        if requirement.applies(form) and _is_blank(form.get(requirement.field)):
            missing.append(requirement.field)
    return missing


def _is_inactive(requirement: ConditionalRequirement, form: dict, partial: bool) -> bool:
    # En un cambio parcial sin `when_field` la condicion vive en el
    # registro guardado, asi que el valor enviado se valida tal cual.
    if partial and requirement.when_field not in form:
        return False
    return not requirement.applies(form)


def _check_formats(
    form: dict, schema: FormSchema, today: date, partial: bool = False
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    for name in schema.email_fields:
        value = form.get(name)
        if not _is_blank(value) and not (isinstance(value, str) and EMAIL_RE.fullmatch(value)):
            issues.append(
                ValidationIssue(INVALID_FORMAT, "El formato del email es inválido", field=name)
            )

    for name in schema.boolean_fields:
        value = form.get(name)
        if value is not None and parse_bool(value) is None:
            issues.append(
                ValidationIssue(
                    INVALID_FORMAT,
                    f"{schema.label(name)} debe ser verdadero o falso",
                    field=name,
                )
            )

    for name, valid_values in schema.enumerations.items():
        value = form.get(name)
        if _is_blank(value):
            continue
        # plazoMeses puede llegar como numero: 24 -> "24".
        normalized = str(value) if isinstance(value, (int, str)) and not isinstance(value, bool) else None
        if normalized not in valid_values:
            issues.append(
                ValidationIssue(
                    INVALID_VALUE,
                    f"{schema.label(name)} inválido",
                    field=name,
                    valid_values=list(valid_values),
                )
            )

    conditional = {c.field: c for c in schema.conditional_requirements}

    for name in schema.positive_number_fields:
        value = form.get(name)
        if _is_blank(value):
            continue
        number = parse_number(value)
        if number is None or number <= 0:
            issues.append(
                ValidationIssue(
                    INVALID_FORMAT,
                    f"{schema.label(name)} debe ser un número positivo",
                    field=name,
                )
            )

    for name in schema.non_negative_number_fields:
        value = form.get(name)
        requirement = conditional.get(name)
        if _is_blank(value) or (requirement and _is_inactive(requirement, form, partial)):
            continue
        number = parse_number(value)
        if number is None or number < 0:
            issues.append(
                ValidationIssue(
                    INVALID_FORMAT,
                    f"{schema.label(name)} debe ser un número no negativo",
                    field=name,
                )
            )

    for name in schema.integer_fields:
        value = form.get(name)
        if not _is_blank(value) and parse_int(value) is None:
            issues.append(
                ValidationIssue(
                    INVALID_FORMAT,
                    f"{schema.label(name)} debe ser un número entero",
                    field=name,
                )
            )

    issues.extend(_check_dates(form, schema, today))
    return issues


def _check_dates(form: dict, schema: FormSchema, today: date) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    birth_field = schema.birth_date_field
    if birth_field and not _is_blank(form.get(birth_field)):
        birth = parse_date(form[birth_field])
        if birth is None:
            issues.append(
                ValidationIssue(
                    INVALID_FORMAT,
                    f"La {schema.label(birth_field)} no es válida",
                    field=birth_field,
                )
            )
        elif birth >= today:
            issues.append(
                ValidationIssue(
                    INVALID_VALUE,
                    f"La {schema.label(birth_field)} debe ser anterior a hoy",
                    field=birth_field,
                )
            )
        elif age_on(birth, today) < schema.minimum_age:
            issues.append(
                ValidationIssue(
                    INVALID_VALUE,
                    f"El solicitante debe ser mayor de {schema.minimum_age} años",
                    field=birth_field,
                )
            )

    for name in schema.issue_date_fields:
        if _is_blank(form.get(name)):
            continue
        issued = parse_date(form[name])
        if issued is None:
            issues.append(
                ValidationIssue(INVALID_FORMAT, f"La {schema.label(name)} no es válida", field=name)
            )
        elif issued > today:
            issues.append(
                ValidationIssue(
                    INVALID_VALUE,
                    f"La {schema.label(name)} no puede ser futura",
                    field=name,
                )
            )
    return issues


# ---------- Coercion ----------


def coerce_form(form: dict, schema: FormSchema, partial: bool = False) -> dict:
    """
    Construye el diccionario a persistir a partir de un formulario valido.

    Solo conserva los campos que el esquema conoce. Los campos
    condicionales cuya condicion no aplica quedan en None. Con
    partial=True eso solo ocurre si el cambio trae tambien el campo del
    que dependen.
    """
    data: dict[str, Any] = {}
    conditional = {c.field: c for c in schema.conditional_requirements}

    for name in schema.all_fields:
        if name not in form:
            if name in conditional or name in schema.optional_fields:
                data[name] = None
            continue

        value = form[name]
        requirement = conditional.get(name)
        if requirement and _is_inactive(requirement, form, partial):
            data[name] = None
        elif _is_blank(value):
            data[name] = None
        elif name in schema.boolean_fields:
            data[name] = parse_bool(value)
        elif name in schema.integer_fields:
            data[name] = parse_int(value)
        elif name in schema.positive_number_fields or name in schema.non_negative_number_fields:
            data[name] = parse_number(value)
        elif name in schema.enumerations:
            data[name] = str(value)
        elif isinstance(value, str):
            data[name] = value.strip()
        else:
            data[name] = value
    return data


# ---------- API publica ----------


def validate_solicitud(form: dict, schema: FormSchema, today: date | None = None) -> ValidationResult:
    """
    Valida un formulario completo de solicitud (modo creacion).

    Parametros:
        form (dict): cuerpo JSON recibido, sin tipar.
        schema (FormSchema): variante del formulario a aplicar.
        today (date | None): fecha de referencia para edad y fechas
            futuras. Por defecto la fecha local actual; los tests la fijan.

    Retorna:
        ValidationResult: issues en orden estable (faltantes primero,
        luego formato y semantica en el orden de las reglas).
    """
    today = today or date.today()
    issues: list[ValidationIssue] = []

    missing = _missing_fields(form, schema)
    if missing:
        issues.append(
            ValidationIssue(MISSING_FIELDS, "Faltan campos requeridos", fields=missing)
        )

    issues.extend(_check_formats(form, schema, today))

    if issues:
        return ValidationResult(is_valid=False, issues=issues)
    return ValidationResult(is_valid=True, data=coerce_form(form, schema))


def validate_update(changes: dict, schema: FormSchema, today: date | None = None) -> ValidationResult:
    """
    Valida un cambio parcial (PUT). Solo formato: la completitud no aplica.

    Ademas de los campos del esquema, `estado` se valida contra los
    estados de una solicitud. `data` contiene unicamente los campos
    enviados (coercionados), listos para un merge parcial.
    """
    today = today or date.today()
    issues = _check_formats(changes, schema, today, partial=True)

    estado = changes.get("estado")
    if estado is not None and estado not in ESTADOS_SOLICITUD:
        issues.append(
            ValidationIssue(
                INVALID_VALUE,
                "Estado de la solicitud inválido",
                field="estado",
                valid_values=list(ESTADOS_SOLICITUD),
            )
        )

    if issues:
        return ValidationResult(is_valid=False, issues=issues)

    coerced = coerce_form(changes, schema, partial=True)
    data = {name: coerced[name] for name in changes if name in coerced}
    if estado is not None:
        data["estado"] = estado
    return ValidationResult(is_valid=True, data=data)
