"""
Modulo de generacion del PDF de la solicitud.

Cada solicitud aceptada produce un documento PDF con los datos del
formulario, que luego se sube al almacenamiento y se referencia desde el
registro en Firestore.

Pipeline de generacion:
    datos validados -> Markdown (string) -> python-markdown -> HTML -> WeasyPrint -> PDF bytes

Por que Markdown como paso intermedio?
--------------------------------------
El layout de la solicitud es una lista de secciones con pares
etiqueta/valor. En Markdown eso es un titulo y una tabla por seccion, y el
CSS del HTML envolvente se encarga del aspecto. El layout (que secciones y
que campos) viene del FormSchema, asi que este modulo no sabe nada de v1/v2.

Todo ocurre en memoria: WeasyPrint escribe el PDF en un BytesIO y solo se
leen los bytes cuando write_pdf() termino. No hay archivos temporales.

Verificacion del resultado
--------------------------
Antes de devolver los bytes comprobamos con python-magic que realmente son
un PDF (magic bytes "%PDF"). Un renderer que devuelve bytes vacios o basura
se trata igual que uno que lanza una excepcion: DocumentGenerationError.
"""

import html
from datetime import datetime
from io import BytesIO
from typing import Any

import magic
import markdown as md_lib
from starlette.concurrency import run_in_threadpool
from weasyprint import HTML

from solicitudes_api.logger import get_logger
from solicitudes_api.models.form_schemas import FormSchema
from solicitudes_api.services.validator import parse_bool

logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"
NOT_AVAILABLE = "N/A"

TITLE = "SOLICITUD DE CRÉDITO"
SUBTITLE = "Bancamia DataExpress"

_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

_STYLE = """
    @page { size: letter; margin: 50px; }
    body { font-family: sans-serif; color: #333333; font-size: 10pt; line-height: 1.5; }
    h1 { text-align: center; color: #1a1a1a; font-size: 20pt; margin-bottom: 4px; }
    .subtitle { text-align: center; color: #666666; font-size: 12pt; margin-top: 0; }
    hr { border: 0; border-top: 1px solid #cccccc; }
    h2 { color: #1a1a1a; font-size: 14pt; text-decoration: underline; margin-top: 18px; }
    table { border-collapse: collapse; width: 100%; }
    th, td { border: 1px solid #dddddd; padding: 6px; text-align: left; }
    th { background: #f4f4f4; }
    .footer { text-align: center; color: #999999; font-size: 8pt; margin-top: 30px; }
"""


class DocumentGenerationError(Exception):
    """El PDF no se pudo generar o el resultado no es un PDF valido."""


# ---------- Formateo de valores ----------


def _escape(text: str) -> str:
    # HTML primero (Markdown deja pasar HTML crudo), luego los caracteres
    # que romperian la tabla o activarian enfasis.
    escaped = html.escape(text, quote=False)
    for char in ("\\", "|", "*", "_", "`", "[", "]"):
        escaped = escaped.replace(char, "\\" + char)
    return escaped.replace("\n", " ")


def format_value(field_name: str, value: Any, schema: FormSchema) -> str:
    """
    Texto que se imprime para un campo.

    - Ausente, None o vacio -> "N/A"
    - Booleanos del esquema -> "Sí" / "No" (misma regla que el validador)
    - tipoDocumento -> nombre completo del documento (o el codigo crudo)
    - Montos enteros sin ".0"
    """
    if field_name in schema.boolean_fields:
        return "Sí" if parse_bool(value) is True else "No"
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return NOT_AVAILABLE
    if field_name == "tipoDocumento":
        return schema.document_type_labels.get(str(value), str(value))
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _generated_on(now: datetime) -> str:
    return f"{now.day} de {_MONTHS[now.month - 1]} de {now.year}, {now:%H:%M}"


# ---------- Construccion del documento ----------


def build_markdown(data: dict, schema: FormSchema, now: datetime | None = None) -> str:
    """
    Arma el documento Markdown de la solicitud.

    Estructura:
        # SOLICITUD DE CRÉDITO
        subtitulo
        ---
        ## SECCION          (una por cada PdfSection del esquema)
        | Campo | Valor |
        ...
        pie "Generado el ..."
    """
    now = now or datetime.now()
    lines = [
        f"# {TITLE}",
        "",
        f'<p class="subtitle">{SUBTITLE}</p>',
        "",
        "---",
        "",
    ]

    for section in schema.pdf_sections:
        lines.append(f"## {section.title}")
        lines.append("")
        lines.append("| Campo | Valor |")
        lines.append("| --- | --- |")
        for label, field_name in section.fields:
            value = format_value(field_name, data.get(field_name), schema)
            lines.append(f"| {_escape(label)} | {_escape(value)} |")
        lines.append("")

    lines.append(f'<p class="footer">Generado el {_generated_on(now)}</p>')
    return "\n".join(lines)


def render_solicitud_pdf(data: dict, schema: FormSchema, now: datetime | None = None) -> bytes:
    """
    Genera el PDF de la solicitud de forma sincrona (bloqueante).

    Parametros:
        data (dict): formulario validado (o el registro persistido).
        schema (FormSchema): define secciones y etiquetas.
        now (datetime | None): fecha del pie; por defecto la actual.

    Retorna:
        bytes: documento PDF completo.

    Raises:
        DocumentGenerationError: si el renderer falla, devuelve vacio o
            el resultado no es application/pdf.
    """
    md_text = build_markdown(data, schema, now)
    html_content = md_lib.markdown(md_text, extensions=["tables"])

    styled_html = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8">
    <style>{_STYLE}</style>
    </head>
    <body>{html_content}</body>
    </html>
    """

    buffer = BytesIO()
    try:
        HTML(string=styled_html).write_pdf(target=buffer)
    except Exception as exc:
        logger.exception("pdf_render_failed", error=str(exc))
        raise DocumentGenerationError("Error al generar el documento PDF") from exc

    pdf_bytes = buffer.getvalue()
    if not pdf_bytes:
        raise DocumentGenerationError("El documento PDF generado esta vacio")

    mime_type = magic.from_buffer(pdf_bytes, mime=True)
    if mime_type != PDF_MIME_TYPE:
        logger.error("pdf_invalid_output", mime_type=mime_type, size=len(pdf_bytes))
        raise DocumentGenerationError(f"El documento generado no es un PDF ({mime_type})")

    logger.info("pdf_generated", size=len(pdf_bytes), schema=schema.name)
    return pdf_bytes


async def generate_solicitud_pdf(data: dict, schema: FormSchema) -> bytes:
    """Version async: WeasyPrint es CPU-bound, se ejecuta en el threadpool."""
    return await run_in_threadpool(render_solicitud_pdf, data, schema)
