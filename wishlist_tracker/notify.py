"""E-mail alerts for price drops and reached target prices."""

from __future__ import annotations

import base64
import logging
import secrets
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Mapping, Sequence

from .config import SMTPConfig
from .models import PriceHistory

log = logging.getLogger(__name__)

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
_HISTORY_ROWS = 14
_BASE64_LINE = 76
_TIMEOUT = 30

_HTML_PART_HEADERS = {
    "Content-Transfer-Encoding": "7bit",
    "Content-Type": "text/html; charset=UTF-8",
}
_CHART_PART_HEADERS = {
    "Content-Disposition": 'inline; filename="price-chart.png"',
    "Content-Id": "<pricechart>",
    "Content-Transfer-Encoding": "base64",
    "Content-Type": "image/png",
}

_PAGE_HEAD = (
    '<!DOCTYPE html><html><head><meta charset="UTF-8"></head>'
    "<body style=\"margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,"
    "'Segoe UI',Roboto,sans-serif;background:#f1f5f9;\">"
)
_SECTION_TITLE = (
    '<h3 style="margin:0 0 12px;font-size:14px;color:#64748b;'
    'text-transform:uppercase;letter-spacing:0.5px;">{}</h3>'
)
_CELL = "padding:8px 12px;border-bottom:1px solid #f1f5f9;"
_HEAD_CELL = "padding:8px 12px;border-bottom:2px solid #e2e8f0;color:#475569;"


class NotificationError(Exception):
    """Raised when an alert cannot be delivered."""


@dataclass
class PriceDropAlert:
    """Everything needed to tell someone about one product's new price."""

    to: str = ""
    product_name: str = ""
    product_url: str = ""
    image_url: str = ""
    old_price: float = 0.0
    new_price: float = 0.0
    is_target: bool = False
    price_history: list[PriceHistory] = field(default_factory=list)
    chart_png: bytes = b""


class Notifier(ABC):
    """Something that can deliver price alerts."""

    @abstractmethod
    def send_price_alert(self, alert: PriceDropAlert) -> None:
        """Deliver a single alert to its recipient."""

    @abstractmethod
    def send_digest(self, to: str, alerts: Sequence[PriceDropAlert]) -> None:
        """Deliver several alerts to one recipient in a single message."""


def alert_subject(alert: PriceDropAlert) -> str:
    """Return the subject line for a single alert."""
    return "🎯 Target Price Reached!" if alert.is_target else "📉 Price Drop Alert"


def _savings(old_price: float, new_price: float) -> tuple[float, float]:
    saved = old_price - new_price
    percent = saved / old_price * 100 if old_price > 0 else 0.0
    return saved, percent


def _multipart(
    sender: str, to: str, subject: str, parts: Sequence[tuple[Mapping[str, str], str]]
) -> bytes:
    boundary = secrets.token_hex(30)
    chunks = [
        f"From: {sender}\r\n",
        f"To: {to}\r\n",
        f"Subject: {subject}\r\n",
        "MIME-Version: 1.0\r\n",
        f'Content-Type: multipart/related; boundary="{boundary}"\r\n',
        "\r\n",
    ]
    for position, (headers, body) in enumerate(parts):
        separator = "\r\n" if position else ""
        header_text = "".join(f"{key}: {value}\r\n" for key, value in sorted(headers.items()))
        chunks.append(f"{separator}--{boundary}\r\n{header_text}\r\n{body}")
    chunks.append(f"\r\n--{boundary}--\r\n")
    return "".join(chunks).encode("utf-8")


def _wrapped_base64(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return "".join(
        encoded[start:start + _BASE64_LINE] + "\r\n"
        for start in range(0, len(encoded), _BASE64_LINE)
    )


def build_message(sender: str, alert: PriceDropAlert, subject: str) -> bytes:
    """Build a multipart/related message with the HTML body and an optional inline chart."""
    parts: list[tuple[Mapping[str, str], str]] = [
        (_HTML_PART_HEADERS, build_html_body(alert, subject))
    ]
    if alert.chart_png:
        parts.append((_CHART_PART_HEADERS, _wrapped_base64(alert.chart_png)))
    return _multipart(sender, alert.to, subject, parts)


def build_digest_message(
    sender: str, to: str, alerts: Sequence[PriceDropAlert], subject: str
) -> bytes:
    """Build a single message that lists several alerts."""
    return _multipart(sender, to, subject, [(_HTML_PART_HEADERS, build_digest_html(alerts, subject))])


def _change_cell(previous: PriceHistory | None, entry: PriceHistory) -> str:
    if previous is None:
        return "—"
    diff = entry.price - previous.price
    if diff < 0:
        return f'<span style="color:#16a34a;">▼ ${-diff:.2f}</span>'
    if diff > 0:
        return f'<span style="color:#dc2626;">▲ ${diff:.2f}</span>'
    return '<span style="color:#94a3b8;">—</span>'


def _history_table(history: Sequence[PriceHistory]) -> str:
    entries = list(history)[-_HISTORY_ROWS:]
    pairs = list(zip([None, *entries[:-1]], entries))
    rows = [
        _SECTION_TITLE.format("Recent Prices"),
        '<table style="width:100%;border-collapse:collapse;font-size:14px;margin-bottom:24px;">',
        f'<tr style="background:#f8fafc;"><th style="text-align:left;{_HEAD_CELL}">Date</th>'
        f'<th style="text-align:right;{_HEAD_CELL}">Price</th>'
        f'<th style="text-align:right;{_HEAD_CELL}">Change</th></tr>',
    ]
    for position, (previous, entry) in enumerate(reversed(pairs)):
        background = "#f8fafc" if position % 2 == 1 else "#ffffff"
        rows.append(
            f'<tr style="background:{background};"><td style="{_CELL}">{entry.date}</td>'
            f'<td style="text-align:right;{_CELL}font-weight:600;">${entry.price:.2f}</td>'
            f'<td style="text-align:right;{_CELL}">{_change_cell(previous, entry)}</td></tr>'
        )
    rows.append("</table>")
    return "".join(rows)


def build_html_body(alert: PriceDropAlert, subject: str) -> str:
    """Render the HTML body of a single alert."""
    saved, percent = _savings(alert.old_price, alert.new_price)
    banner = "#16a34a" if alert.is_target else "#2563eb"
    out = [
        _PAGE_HEAD,
        '<div style="max-width:600px;margin:20px auto;background:#ffffff;border-radius:12px;'
        'overflow:hidden;box-shadow:0 2px 8px rgba(0,0,0,0.08);">',
        f'<div style="background:{banner};padding:24px 30px;color:white;">',
        f'<h1 style="margin:0;font-size:22px;">{subject}</h1>',
        "</div>",
        '<div style="padding:24px 30px;">',
    ]

    if alert.image_url:
        out += [
            '<div style="display:flex;align-items:center;gap:16px;margin-bottom:20px;">',
            f'<img src="{alert.image_url}" alt="" style="width:80px;height:80px;object-fit:contain;'
            'border-radius:8px;border:1px solid #e2e8f0;">',
            f'<h2 style="margin:0;font-size:18px;color:#1e293b;">{alert.product_name}</h2>',
            "</div>",
        ]
    else:
        out.append(
            f'<h2 style="margin:0 0 20px;font-size:18px;color:#1e293b;">{alert.product_name}</h2>'
        )

    out += [
        '<div style="display:flex;gap:12px;margin-bottom:24px;">',
        '<div style="flex:1;background:#fee2e2;border-radius:8px;padding:14px;text-align:center;">'
        '<div style="font-size:12px;color:#991b1b;text-transform:uppercase;font-weight:600;">'
        "Old Price</div>"
        '<div style="font-size:26px;font-weight:700;color:#dc2626;text-decoration:line-through;">'
        f"${alert.old_price:.2f}</div></div>",
        '<div style="flex:1;background:#dcfce7;border-radius:8px;padding:14px;text-align:center;">'
        '<div style="font-size:12px;color:#166534;text-transform:uppercase;font-weight:600;">'
        "New Price</div>"
        f'<div style="font-size:26px;font-weight:700;color:#16a34a;">${alert.new_price:.2f}</div></div>',
        "</div>",
    ]

    if saved > 0:
        out.append(
            '<div style="background:#f0fdf4;border:1px solid #bbf7d0;border-radius:8px;padding:12px;'
            'text-align:center;margin-bottom:24px;font-size:15px;color:#166534;font-weight:600;">'
            f"💰 You save ${saved:.2f} ({percent:.0f}% off)</div>"
        )

    if alert.chart_png:
        out += [
            '<div style="margin-bottom:24px;">',
            _SECTION_TITLE.format("Price History"),
            '<img src="cid:pricechart" alt="Price History Chart" '
            'style="width:100%;border-radius:8px;border:1px solid #e2e8f0;">',
            "</div>",
        ]

    if alert.price_history:
        out.append(_history_table(alert.price_history))

    out += [
        f'<a href="{alert.product_url}" style="display:block;text-align:center;background:{banner};'
        "color:white;padding:14px;border-radius:8px;text-decoration:none;font-weight:600;"
        'font-size:15px;">View Product →</a>',
        "</div>",
        '<div style="padding:16px 30px;background:#f8fafc;border-top:1px solid #e2e8f0;'
        'text-align:center;font-size:12px;color:#94a3b8;">Wishlist Price Tracker — You\'re '
        "receiving this because you registered this product for tracking.</div>",
        "</div></body></html>",
    ]
    return "".join(out)


def _digest_card(position: int, alert: PriceDropAlert) -> str:
    saved, percent = _savings(alert.old_price, alert.new_price)
    background = "#f8fafc" if position % 2 == 1 else "#ffffff"
    border = "border-top:1px solid #e2e8f0;" if position > 0 else ""
    badge_style = (
        "display:inline-block;background:{};color:white;font-size:11px;padding:2px 8px;"
        "border-radius:4px;margin-bottom:4px;"
    )
    if alert.is_target:
        badge = f'<span style="{badge_style.format("#16a34a")}">🎯 TARGET REACHED</span>'
    else:
        badge = f'<span style="{badge_style.format("#2563eb")}">PRICE DROP</span>'
    savings_text = (
        f' <span style="color:#16a34a;font-size:12px;">(save ${saved:.2f} / {percent:.0f}%)</span>'
        if saved > 0
        else ""
    )

    out = [
        f'<div style="background:{background};padding:16px 24px;{border}">',
        '<table cellpadding="0" cellspacing="0" border="0" width="100%"><tr>',
    ]
    if alert.image_url:
        out.append(
            f'<td width="60" valign="top" style="padding-right:12px;"><img src="{alert.image_url}" '
            'alt="" width="60" height="60" style="display:block;border-radius:8px;'
            'border:1px solid #e2e8f0;object-fit:contain;"></td>'
        )
    out += [
        '<td valign="top" style="padding-right:12px;">',
        badge,
        '<div style="font-weight:600;font-size:14px;color:#1e293b;margin-bottom:4px;">'
        f"{alert.product_name}</div>",
        f'<div style="font-size:13px;color:#64748b;"><s style="color:#dc2626;">${alert.old_price:.2f}</s>'
        f' &rarr; <strong style="color:#16a34a;font-size:15px;">${alert.new_price:.2f}</strong>'
        f"{savings_text}</div>",
        "</td>",
        f'<td width="70" valign="middle" align="center"><a href="{alert.product_url}" '
        'style="display:inline-block;background:#2563eb;color:white;padding:10px 14px;'
        "border-radius:6px;text-decoration:none;font-size:12px;font-weight:600;"
        'white-space:nowrap;">View &rarr;</a></td>',
        "</tr></table>",
        "</div>",
    ]
    return "".join(out)


def build_digest_html(alerts: Sequence[PriceDropAlert], subject: str) -> str:
    """Render one HTML page that lists several alerts as cards."""
    out = [
        _PAGE_HEAD,
        '<div style="max-width:600px;margin:20px auto;">',
        '<div style="background:#2563eb;padding:24px 30px;color:white;border-radius:12px 12px 0 0;">',
        f'<h1 style="margin:0;font-size:22px;">{subject}</h1>',
        f'<p style="margin:6px 0 0;opacity:.8;font-size:14px;">{len(alerts)} of your tracked '
        "products have price changes</p>",
        "</div>",
    ]
    out += [_digest_card(position, alert) for position, alert in enumerate(alerts)]
    out += [
        '<div style="padding:16px 30px;background:#ffffff;border-top:1px solid #e2e8f0;'
        "border-radius:0 0 12px 12px;text-align:center;font-size:12px;color:#94a3b8;\">"
        "Wishlist Price Tracker - You're receiving this because you registered these products "
        "for tracking.</div>",
        "</div></body></html>",
    ]
    return "".join(out)


class Emailer(Notifier):
    """Sends alerts as HTML e-mail over SMTP."""

    def __init__(self, config: SMTPConfig) -> None:
        self._config = config

    @property
    def configured(self) -> bool:
        return bool(self._config.host and self._config.username)

    def _deliver(self, to: str, message: bytes, action: str) -> None:
        config = self._config
        try:
            with smtplib.SMTP(config.host, config.port, timeout=_TIMEOUT) as smtp:
                smtp.ehlo()
                encrypted = False
                if smtp.has_extn("starttls"):
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
                    encrypted = True
                if not encrypted and config.host not in _LOCAL_HOSTS:
                    raise NotificationError("unencrypted connection")
                smtp.login(config.username, config.password)
                smtp.sendmail(config.sender, [to], message)
        except (smtplib.SMTPException, OSError, NotificationError) as exc:
            raise NotificationError(f"{action} to {to}: {exc}") from exc

    def send_price_alert(self, alert: PriceDropAlert) -> None:
        if not self.configured:
            log.info(
                "[email] SMTP not configured — skipping email to %s for %s",
                alert.to,
                alert.product_name,
            )
            return
        message = build_message(self._config.sender, alert, alert_subject(alert))
        self._deliver(alert.to, message, "send email")
        log.info(
            "[email] Sent price alert to %s for %s ($%.2f -> $%.2f)",
            alert.to,
            alert.product_name,
            alert.old_price,
            alert.new_price,
        )

    def send_digest(self, to: str, alerts: Sequence[PriceDropAlert]) -> None:
        if not alerts:
            return
        if len(alerts) == 1:
            self.send_price_alert(replace(alerts[0], to=to))
            return
        if not self.configured:
            log.info(
                "[email] SMTP not configured — skipping digest to %s (%d alerts)", to, len(alerts)
            )
            return
        subject = f"📉 {len(alerts)} Price Alerts for You!"
        message = build_digest_message(self._config.sender, to, alerts, subject)
        self._deliver(to, message, "send digest")
        log.info("[email] Sent digest to %s with %d alerts", to, len(alerts))