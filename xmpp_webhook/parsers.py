"""
Parsers dos webhooks suportados. Cada parser é uma função pura
`parse(request) -> AlertMessage` que levanta ParseError para payloads inválidos.

O parâmetro de query `recipients` (lista separada por vírgulas) substitui os
destinatários padrão para aquele alerta.
"""
from typing import Callable, Dict, Optional, Tuple

from .constants import split_recipients
from .errors import ParseError
from .messages import AlertMessage
from .utils import _is_meaningful, format_labels, format_timestamp, pick_first_nonempty

ParserFunc = Callable[..., AlertMessage]

STATUS_DISPLAY = {
    "firing": ("🔥", "FIRING"),
    "resolved": ("🟢", "RESOLVED"),
    # estados do alerting legado do Grafana
    "alerting": ("🔥", "ALERTING"),
    "ok": ("🟢", "OK"),
    "no_data": ("⚠️", "NO DATA"),
    "pending": ("🚧", "PENDING"),
    "paused": ("⏸️", "PAUSED"),
}

# labels já exibidas em outras linhas do bloco
_HIDDEN_LABELS = {"alertname", "__alert_rule_uid__", "grafana_folder"}


def _load_json(request) -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ParseError("corpo da requisição não é um objeto JSON")
    return data


def _recipients(request) -> Optional[Tuple[str, ...]]:
    values = split_recipients(request.args.get("recipients"))
    return tuple(values) or None


def _status_prefix(status) -> str:
    key = str(status or "").strip().lower()
    emoji, label = STATUS_DISPLAY.get(key, ("🚨", key.upper() or "ALERTA"))
    return f"{emoji} [{label}]"


def format_alert_block(alert: dict) -> str:
    """Formata um alerta no formato Alertmanager (também usado pelo Grafana unified alerting)."""
    if not isinstance(alert, dict):
        raise ParseError("alerta inválido no payload")
    labels = alert.get("labels") if isinstance(alert.get("labels"), dict) else {}
    annotations = alert.get("annotations") if isinstance(alert.get("annotations"), dict) else {}

    name = pick_first_nonempty(labels.get("alertname"), annotations.get("title")) or "Alerta"
    lines = [f"{_status_prefix(alert.get('status'))} {name}"]

    summary = pick_first_nonempty(annotations.get("summary"))
    description = pick_first_nonempty(annotations.get("description"))
    for text in (summary, description):
        if text and text not in lines:
            lines.append(text)

    value_string = alert.get("valueString")
    if _is_meaningful(value_string):
        lines.append(f"Valores: {value_string}")

    label_text = format_labels(labels, skip=_HIDDEN_LABELS)
    if label_text:
        lines.append(f"Labels: {label_text}")

    starts_at = format_timestamp(alert.get("startsAt"))
    if starts_at:
        lines.append(f"Início: {starts_at}")
    if str(alert.get("status", "")).lower() == "resolved":
        ends_at = format_timestamp(alert.get("endsAt"))
        if ends_at:
            lines.append(f"Fim: {ends_at}")

    link = pick_first_nonempty(alert.get("generatorURL"), alert.get("panelURL"), alert.get("dashboardURL"))
    if link:
        lines.append(link)
    return "\n".join(lines)


def _format_alert_list(alerts) -> str:
    if not isinstance(alerts, list) or not alerts:
        raise ParseError("payload sem alertas")
    return "\n\n".join(format_alert_block(alert) for alert in alerts)


def _format_grafana_legacy(data: dict) -> str:
    title = pick_first_nonempty(data.get("title"), data.get("ruleName")) or "Alerta!"
    lines = [f"{_status_prefix(data.get('state'))} {title}"]

    message = pick_first_nonempty(data.get("message"))
    if message:
        lines.append(message)

    matches = data.get("evalMatches") or []
    if not isinstance(matches, list):
        raise ParseError("campo 'evalMatches' inválido")
    for match in matches:
        if not isinstance(match, dict):
            continue
        metric = match.get("metric", "Métrica")
        value = match.get("value", "N/A")
        tagstr = format_labels(match.get("tags"))
        lines.append(f"{metric}: {value}" + (f" ({tagstr})" if tagstr else ""))

    rule_url = pick_first_nonempty(data.get("ruleUrl"))
    if rule_url:
        lines.append(rule_url)
    return "\n".join(lines)


def parse_grafana(request) -> AlertMessage:
    data = _load_json(request)
    if "alerts" in data:
        text = _format_alert_list(data["alerts"])
    elif any(k in data for k in ("title", "ruleName", "state")):
        text = _format_grafana_legacy(data)
    else:
        raise ParseError("payload do Grafana não reconhecido")
    return AlertMessage(text=text, recipients=_recipients(request))


def parse_alertmanager(request) -> AlertMessage:
    data = _load_json(request)
    return AlertMessage(text=_format_alert_list(data.get("alerts")), recipients=_recipients(request))


def _format_slack_attachment(attachment: dict):
    if not isinstance(attachment, dict):
        return []
    lines = []
    for key in ("pretext", "title", "text"):
        value = pick_first_nonempty(attachment.get(key))
        if value:
            lines.append(value)
    if attachment.get("title_link") and lines:
        lines.append(str(attachment["title_link"]))
    fields = attachment.get("fields") or []
    if not isinstance(fields, list):
        raise ParseError("campo 'fields' inválido")
    for field in fields:
        if not isinstance(field, dict):
            continue
        title = pick_first_nonempty(field.get("title"))
        value = pick_first_nonempty(field.get("value"))
        if title and value:
            lines.append(f"{title}: {value}")
        elif value:
            lines.append(value)
    if not lines:
        fallback = pick_first_nonempty(attachment.get("fallback"))
        if fallback:
            lines.append(fallback)
    return lines


def parse_slack(request) -> AlertMessage:
    data = _load_json(request)
    lines = []
    text = pick_first_nonempty(data.get("text"))
    if text:
        lines.append(text)
    attachments = data.get("attachments") or []
    if not isinstance(attachments, list):
        raise ParseError("campo 'attachments' inválido")
    for attachment in attachments:
        lines.extend(_format_slack_attachment(attachment))
    if not lines:
        raise ParseError("payload do Slack sem texto")
    return AlertMessage(text="\n".join(lines), recipients=_recipients(request))


PARSERS: Dict[str, ParserFunc] = {
    "grafana": parse_grafana,
    "alertmanager": parse_alertmanager,
    "slack": parse_slack,
}
