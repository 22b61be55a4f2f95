from datetime import datetime
from typing import Mapping

SAMPLE_PROTOCOL_ID = "20260221132200000"
SAMPLE_TITLE = "Exemplo de Título de Processo"
SAMPLE_DESCRIPTION = (
    "Este é um exemplo de descrição de conteúdo que será substituído "
    "dinamicamente pelo sistema quando o protocolo for gerado."
)

# tags the dashboard advertises to template authors
KNOWN_TAGS = ("protocol_id", "title", "description", "created_at", "username")


def render_tags(content: str, values: Mapping[str, str]) -> str:
    """Replace every ``{{name}}`` in ``content`` for each name in ``values``.

    Matching is literal and case-sensitive; tags without a value stay as-is.
    """
    for name, value in values.items():
        content = content.replace("{{" + name + "}}", str(value))
    return content


def preview_values(username: str = "admin", now: datetime | None = None) -> dict[str, str]:
    now = now or datetime.now()
    return {
        "protocol_id": SAMPLE_PROTOCOL_ID,
        "title": SAMPLE_TITLE,
        "description": SAMPLE_DESCRIPTION,
        "created_at": now.strftime("%d/%m/%Y %H:%M:%S"),
        "username": username,
    }


def render_preview(content: str, username: str = "admin") -> str:
    return render_tags(content, preview_values(username))
