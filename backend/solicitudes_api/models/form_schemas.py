"""
Descriptores de las variantes del formulario de solicitud.

El formulario evoluciono en dos versiones incompatibles. En vez de ramificar
el validador o el generador de PDF con `if version == ...`, cada variante se
describe como datos (FormSchema) y se selecciona por configuracion
(settings.SOLICITUD_SCHEMA).

    v1 -> formulario completo: personal, laboral, credito y referencias.
    v2 -> formulario de negocio: identidad, negocio y autorizaciones.

Un FormSchema define:
    - que campos son obligatorios (en orden, para reportar faltantes),
    - que campos son booleanos, enumerados, numericos o fechas,
    - requisitos condicionales (montoDeudas si tieneDeudas == "si"),
    - el layout de secciones del PDF y los campos de busqueda.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ConditionalRequirement:
    """`field` es obligatorio solo cuando `when_field` vale `equals`."""

    field: str
    when_field: str
    equals: str

    def applies(self, form: dict) -> bool:
        return form.get(self.when_field) == self.equals


@dataclass(frozen=True)
class PdfSection:
    title: str
    # Pares (etiqueta, campo) en el orden en que se imprimen.
    fields: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class FormSchema:
    name: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()
    boolean_fields: tuple[str, ...] = ()
    enumerations: dict[str, tuple[str, ...]] = field(default_factory=dict)
    email_fields: tuple[str, ...] = ("email",)
    positive_number_fields: tuple[str, ...] = ()
    non_negative_number_fields: tuple[str, ...] = ()
    integer_fields: tuple[str, ...] = ()
    birth_date_field: str | None = "fechaNacimiento"
    issue_date_fields: tuple[str, ...] = ()
    conditional_requirements: tuple[ConditionalRequirement, ...] = ()
    minimum_age: int = 18
    # Nombre legible de cada campo para los mensajes de error.
    labels: dict[str, str] = field(default_factory=dict)
    document_type_labels: dict[str, str] = field(default_factory=dict)
    search_fields: tuple[str, ...] = ("nombreCompleto", "numeroDocumento", "email")
    pdf_sections: tuple[PdfSection, ...] = ()

    @property
    def conditional_fields(self) -> tuple[str, ...]:
        return tuple(c.field for c in self.conditional_requirements)

    @property
    def all_fields(self) -> tuple[str, ...]:
        """Campos que la variante conoce, sin repetir y en orden estable."""
        seen: dict[str, None] = {}
        for name in (*self.required_fields, *self.conditional_fields, *self.optional_fields):
            seen.setdefault(name, None)
        return tuple(seen)

    def label(self, field_name: str) -> str:
        return self.labels.get(field_name, field_name)


# Estados por los que pasa una solicitud. Se crea en "pendiente".
ESTADOS_SOLICITUD: tuple[str, ...] = ("pendiente", "en_revision", "aprobado", "rechazado")


DOCUMENT_TYPE_LABELS: dict[str, str] = {
    "CC": "Cédula de Ciudadanía",
    "CE": "Cédula de Extranjería",
    "PA": "Pasaporte",
    "TI": "Tarjeta de Identidad",
    "PEP": "Permiso Especial de Permanencia",
    "PPP": "Permiso por Protección Temporal",
}


# ---------- v1: formulario completo ----------

SOLICITUD_V1 = FormSchema(
    name="v1",
    required_fields=(
        # Informacion personal
        "nombreCompleto",
        "tipoDocumento",
        "numeroDocumento",
        "fechaNacimiento",
        "estadoCivil",
        "genero",
        "telefono",
        "email",
        "direccion",
        "ciudad",
        "departamento",
        # Informacion laboral
        "ocupacion",
        "empresa",
        "cargoActual",
        "tipoContrato",
        "ingresosMensuales",
        "tiempoEmpleo",
        # Informacion del credito
        "montoSolicitado",
        "plazoMeses",
        "proposito",
        "tieneDeudas",
        # Referencias personales
        "refNombre1",
        "refTelefono1",
        "refRelacion1",
        "refNombre2",
        "refTelefono2",
        "refRelacion2",
    ),
    enumerations={
        "tipoDocumento": ("CC", "CE", "PA", "TI"),
        "estadoCivil": ("soltero", "casado", "union", "divorciado", "viudo"),
        "genero": ("masculino", "femenino", "otro"),
        "tipoContrato": ("indefinido", "fijo", "prestacion", "independiente"),
        "tiempoEmpleo": ("menos6", "6a12", "1a2", "2a5", "mas5"),
        "plazoMeses": ("12", "24", "36", "48", "60", "72"),
        "tieneDeudas": ("si", "no"),
    },
    positive_number_fields=("montoSolicitado", "ingresosMensuales"),
    non_negative_number_fields=("montoDeudas",),
    conditional_requirements=(
        ConditionalRequirement(field="montoDeudas", when_field="tieneDeudas", equals="si"),
    ),
    labels={
        "email": "email",
        "tipoDocumento": "Tipo de documento",
        "estadoCivil": "Estado civil",
        "genero": "Género",
        "tipoContrato": "Tipo de contrato",
        "tiempoEmpleo": "Tiempo de empleo",
        "plazoMeses": "Plazo en meses",
        "tieneDeudas": "Valor de tieneDeudas",
        "montoSolicitado": "El monto solicitado",
        "ingresosMensuales": "El valor de ingresos mensuales",
        "montoDeudas": "El monto de deudas",
        "fechaNacimiento": "fecha de nacimiento",
    },
    document_type_labels=DOCUMENT_TYPE_LABELS,
    pdf_sections=(
        PdfSection(
            "INFORMACIÓN PERSONAL",
            (
                ("Nombre Completo", "nombreCompleto"),
                ("Tipo de Documento", "tipoDocumento"),
                ("Número", "numeroDocumento"),
                ("Fecha de Nacimiento", "fechaNacimiento"),
                ("Estado Civil", "estadoCivil"),
                ("Género", "genero"),
                ("Teléfono", "telefono"),
                ("Email", "email"),
                ("Dirección", "direccion"),
                ("Ciudad", "ciudad"),
                ("Departamento", "departamento"),
            ),
        ),
        PdfSection(
            "INFORMACIÓN LABORAL",
            (
                ("Ocupación", "ocupacion"),
                ("Empresa", "empresa"),
                ("Cargo Actual", "cargoActual"),
                ("Tipo de Contrato", "tipoContrato"),
                ("Ingresos Mensuales", "ingresosMensuales"),
                ("Tiempo de Empleo", "tiempoEmpleo"),
            ),
        ),
        PdfSection(
            "INFORMACIÓN DEL CRÉDITO",
            (
                ("Monto Solicitado", "montoSolicitado"),
                ("Plazo (meses)", "plazoMeses"),
                ("Propósito", "proposito"),
                ("Tiene Deudas", "tieneDeudas"),
                ("Monto de Deudas", "montoDeudas"),
            ),
        ),
        PdfSection(
            "REFERENCIAS PERSONALES",
            (
                ("Referencia 1", "refNombre1"),
                ("Teléfono", "refTelefono1"),
                ("Relación", "refRelacion1"),
                ("Referencia 2", "refNombre2"),
                ("Teléfono", "refTelefono2"),
                ("Relación", "refRelacion2"),
            ),
        ),
    ),
)


# ---------- v2: formulario de negocio ----------

SOLICITUD_V2 = FormSchema(
    name="v2",
    required_fields=(
        "email",
        "autorizacionTratamientoDatos",
        "autorizacionContacto",
        "nombreCompleto",
        "tipoDocumento",
        "numeroDocumento",
        "fechaNacimiento",
        "fechaExpedicionDocumento",
        "ciudadNegocio",
        "direccionNegocio",
        "celularNegocio",
    ),
    optional_fields=("referencia",),
    boolean_fields=("autorizacionTratamientoDatos", "autorizacionContacto"),
    enumerations={
        "tipoDocumento": ("CC", "CE", "PA", "PEP", "PPP"),
    },
    integer_fields=("referencia",),
    issue_date_fields=("fechaExpedicionDocumento",),
    labels={
        "tipoDocumento": "Tipo de documento",
        "fechaNacimiento": "fecha de nacimiento",
        "fechaExpedicionDocumento": "fecha de expedición del documento",
        "referencia": "La referencia",
        "autorizacionTratamientoDatos": "autorizacionTratamientoDatos",
        "autorizacionContacto": "autorizacionContacto",
    },
    document_type_labels=DOCUMENT_TYPE_LABELS,
    pdf_sections=(
        PdfSection(
            "INFORMACIÓN PERSONAL",
            (
                ("Nombre Completo", "nombreCompleto"),
                ("Tipo de Documento", "tipoDocumento"),
                ("Número", "numeroDocumento"),
                ("Fecha de Nacimiento", "fechaNacimiento"),
                ("Expedición Documento", "fechaExpedicionDocumento"),
                ("Email", "email"),
                ("Referencia", "referencia"),
            ),
        ),
        PdfSection(
            "INFORMACIÓN DEL NEGOCIO",
            (
                ("Ciudad", "ciudadNegocio"),
                ("Dirección", "direccionNegocio"),
                ("Celular", "celularNegocio"),
            ),
        ),
        PdfSection(
            "AUTORIZACIONES",
            (
                ("Autorización Tratamiento de Datos", "autorizacionTratamientoDatos"),
                ("Autorización de Contacto", "autorizacionContacto"),
            ),
        ),
    ),
)


FORM_SCHEMAS: dict[str, FormSchema] = {
    SOLICITUD_V1.name: SOLICITUD_V1,
    SOLICITUD_V2.name: SOLICITUD_V2,
}


def get_form_schema(name: str) -> FormSchema:
    try:
        return FORM_SCHEMAS[name]
    except KeyError:
        raise ValueError(
            f"Unknown solicitud schema '{name}'. Valid values: {', '.join(FORM_SCHEMAS)}"
        ) from None
