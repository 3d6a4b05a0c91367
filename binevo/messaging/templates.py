"""
Platform email templates (Romanian copy, minimal inline HTML).
"""

from __future__ import annotations

import html
from typing import Optional

PLAN_LABELS = {"BASIC": "Basic", "PRO": "Pro", "ELITE": "Elite"}


def _layout(title: str, body: str) -> str:
    return (
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">'
        f'<h2 style="color:#4f46e5">{html.escape(title)}</h2>{body}'
        '<p style="color:#888;font-size:12px;margin-top:32px">Binevo - platforma pentru ONG-uri</p>'
        "</div>"
    )


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{html.escape(url)}" style="background:#4f46e5;color:#fff;padding:10px 18px;'
        f'border-radius:6px;text-decoration:none">{html.escape(label)}</a></p>'
    )


def welcome_email(name: str, ngo_name: str, dashboard_url: str) -> tuple[str, str]:
    subject = f"Bine ai venit pe Binevo, {ngo_name}!"
    body = (
        f"<p>Salut {html.escape(name)},</p>"
        f"<p>Contul organizatiei <strong>{html.escape(ngo_name)}</strong> a fost creat.</p>"
        + _button(dashboard_url, "Deschide dashboard-ul")
    )
    return subject, _layout("Bine ai venit!", body)


def new_ngo_alert(ngo_name: str, admin_email: str) -> tuple[str, str]:
    subject = f"ONG nou inregistrat: {ngo_name}"
    body = f"<p>{html.escape(ngo_name)} s-a inregistrat (admin: {html.escape(admin_email)}).</p>"
    return subject, _layout("Inregistrare noua", body)


def password_reset_email(name: str, reset_url: str) -> tuple[str, str]:
    subject = "Resetare parola Binevo"
    body = (
        f"<p>Salut {html.escape(name)},</p>"
        "<p>Am primit o cerere de resetare a parolei. Linkul este valabil 1 ora.</p>"
        + _button(reset_url, "Reseteaza parola")
        + "<p>Daca nu ai cerut resetarea, ignora acest email.</p>"
    )
    return subject, _layout("Resetare parola", body)


def team_invite_email(name: str, ngo_name: str, login_url: str, temporary_password: str) -> tuple[str, str]:
    subject = f"Ai fost invitat in echipa {ngo_name} pe Binevo"
    body = (
        f"<p>Salut {html.escape(name)},</p>"
        f"<p>Ai primit acces la dashboard-ul {html.escape(ngo_name)}.</p>"
        f"<p>Parola temporara: <code>{html.escape(temporary_password)}</code></p>"
        + _button(login_url, "Autentificare")
    )
    return subject, _layout("Invitatie in echipa", body)


def subscription_changed_email(ngo_name: str, plan: str, expires_label: Optional[str]) -> tuple[str, str]:
    label = PLAN_LABELS.get(plan, plan)
    subject = f"Abonamentul {label} este activ"
    validity = f"valabil pana la {expires_label}" if expires_label else "fara data de expirare"
    body = f"<p>Abonamentul {label} pentru {html.escape(ngo_name)} este activ, {validity}.</p>"
    return subject, _layout("Abonament actualizat", body)


def subscription_expiring_email(ngo_name: str, plan: str, days_left: int, billing_url: str) -> tuple[str, str]:
    label = PLAN_LABELS.get(plan, plan)
    subject = f"Abonamentul {label} expira in {days_left} zile"
    body = (
        f"<p>Abonamentul {label} al {html.escape(ngo_name)} expira in {days_left} zile.</p>"
        + _button(billing_url, "Reinnoieste abonamentul")
    )
    return subject, _layout("Abonament pe cale sa expire", body)


def subscription_last_warning_email(ngo_name: str, plan: str, days_left: int, billing_url: str) -> tuple[str, str]:
    label = PLAN_LABELS.get(plan, plan)
    subject = f"Ultima notificare: abonamentul {label} a expirat"
    body = (
        f"<p>Abonamentul {label} al {html.escape(ngo_name)} a expirat. "
        f"In {days_left} zile contul va trece pe planul Basic.</p>"
        + _button(billing_url, "Reinnoieste acum")
    )
    return subject, _layout("Abonament expirat", body)


def subscription_downgraded_email(ngo_name: str, old_plan: str) -> tuple[str, str]:
    label = PLAN_LABELS.get(old_plan, old_plan)
    subject = "Contul a trecut pe planul Basic"
    body = f"<p>Abonamentul {label} al {html.escape(ngo_name)} a expirat si contul a trecut pe Basic.</p>"
    return subject, _layout("Plan schimbat", body)


def invoice_email(ngo_name: str, invoice_number: str, total: float, due_label: str, pay_url: str) -> tuple[str, str]:
    subject = f"Factura {invoice_number} - Binevo"
    body = (
        f"<p>Factura {html.escape(invoice_number)} pentru {html.escape(ngo_name)}: "
        f"<strong>{total:.2f} RON</strong>, scadenta {due_label}.</p>" + _button(pay_url, "Vezi si plateste factura")
    )
    return subject, _layout("Factura noua", body)


def payment_reminder_email(
    invoice_number: str, total: float, due_label: str, pay_url: str, stage: str
) -> tuple[str, str]:
    titles = {
        "upcoming": f"Factura {invoice_number} este scadenta pe {due_label}",
        "overdue": f"Factura {invoice_number} este restanta",
        "second_warning": f"Al doilea avertisment: factura {invoice_number} restanta",
        "suspended": f"Cont suspendat: factura {invoice_number} neplatita",
    }
    subject = titles.get(stage, titles["overdue"])
    body = f"<p>Suma de plata: <strong>{total:.2f} RON</strong>.</p>" + _button(pay_url, "Plateste factura")
    return subject, _layout(subject, body)


def invoice_paid_email(invoice_number: str, total: float) -> tuple[str, str]:
    subject = f"Plata confirmata pentru factura {invoice_number}"
    body = f"<p>Am primit plata de {total:.2f} RON. Multumim!</p>"
    return subject, _layout("Plata confirmata", body)


def admin_alert_email(title: str, message: str, action_url: Optional[str] = None) -> tuple[str, str]:
    body = f"<p>{html.escape(message)}</p>"
    if action_url:
        body += _button(action_url, "Detalii")
    return title, _layout(title, body)


# Starting points offered when creating a campaign; placeholders are filled
# per donor by the campaign sender.
CAMPAIGN_TEMPLATES = [
    {
        "type": "THANK_YOU",
        "name": "Multumire",
        "subject": "Multumim, {{name}}!",
        "email_body": (
            "<p>Draga {{name}},</p>"
            "<p>Iti multumim din suflet pentru sprijinul acordat {{ngo_name}}. "
            "Datorita tie putem continua ceea ce facem.</p>"
            "<p>Cu recunostinta,<br>Echipa {{ngo_name}}</p>"
        ),
        "sms_body": "{{name}}, iti multumim pentru sprijinul acordat {{ngo_name}}!",
    },
    {
        "type": "UPDATE",
        "name": "Noutati din proiect",
        "subject": "Ce am realizat impreuna",
        "email_body": (
            "<p>Draga {{name}},</p>"
            "<p>Vrem sa iti aratam ce am reusit in ultima perioada datorita sustinatorilor nostri.</p>"
            "<p>Echipa {{ngo_name}}</p>"
        ),
        "sms_body": "{{ngo_name}}: avem noutati despre proiectele sustinute de tine.",
    },
    {
        "type": "EMERGENCY_APPEAL",
        "name": "Apel urgent",
        "subject": "Avem nevoie de ajutorul tau acum",
        "email_body": (
            "<p>Draga {{name}},</p>"
            "<p>Ne confruntam cu o situatie urgenta si fiecare donatie conteaza.</p>"
            "<p>Multumim,<br>Echipa {{ngo_name}}</p>"
        ),
        "sms_body": "{{ngo_name}}: apel urgent. Orice donatie ne ajuta acum.",
    },
    {
        "type": "NEWSLETTER",
        "name": "Newsletter lunar",
        "subject": "Newsletter {{ngo_name}}",
        "email_body": "<p>Salut {{name}},</p><p>Iata noutatile lunii de la {{ngo_name}}.</p>",
        "sms_body": "{{ngo_name}}: a aparut newsletter-ul lunii.",
    },
    {
        "type": "REACTIVATION",
        "name": "Reactivare donatori",
        "subject": "Ne este dor de tine, {{name}}",
        "email_body": (
            "<p>Draga {{name}},</p>"
            "<p>A trecut ceva timp de la ultima ta donatie. Iti aratam ce s-a schimbat intre timp.</p>"
            "<p>Echipa {{ngo_name}}</p>"
        ),
        "sms_body": "{{name}}, ne este dor de tine la {{ngo_name}}.",
    },
    {
        "type": "CORPORATE_OUTREACH",
        "name": "Parteneriat corporativ",
        "subject": "Propunere de parteneriat cu {{ngo_name}}",
        "email_body": (
            "<p>Buna ziua,</p>"
            "<p>{{ngo_name}} cauta parteneri care sa sustina proiectele noastre. "
            "Sponsorizarile sunt deductibile conform Codului Fiscal.</p>"
        ),
        "sms_body": "{{ngo_name}} va invita la un parteneriat de sponsorizare.",
    },
]
