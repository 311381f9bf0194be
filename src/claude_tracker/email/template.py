"""HTML bodies for session notifications and period reports."""

from html import escape
from typing import Dict, List

from claude_tracker.models.session import Session
from claude_tracker.utils.formatting import format_datetime, format_duration

MAX_FILES_LISTED = 20

ROW = (
    '<tr><td style="padding: 8px 12px; color: #666; font-weight: 500; '
    'width: 120px;">{label}</td><td style="padding: 8px 12px;">{value}</td></tr>'
)


def _page(title: str, subtitle: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 0; background: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #6b4fbb; border-radius: 12px 12px 0 0; padding: 24px; color: white;">
      <h1 style="margin: 0; font-size: 20px; font-weight: 600;">{escape(title)}</h1>
      <p style="margin: 8px 0 0 0; opacity: 0.9; font-size: 14px;">{escape(subtitle)}</p>
    </div>
    <div style="background: white; padding: 20px; border: 1px solid #e0e0e0;">
{body}
    </div>
    <div style="background: #fafafa; border: 1px solid #e0e0e0; border-top: none; border-radius: 0 0 12px 12px; padding: 16px; text-align: center;">
      <p style="margin: 0; color: #999; font-size: 12px;">{escape(footer)}</p>
    </div>
  </div>
</body>
</html>"""


def _item_list(heading: str, items: List[str], empty: str, limit: int = 0) -> str:
    shown = items[:limit] if limit else items
    if shown:
        lines = [f"<li>{escape(item)}</li>" for item in shown]
    else:
        lines = [f'<li style="color: #999;">{escape(empty)}</li>']
    if limit and len(items) > limit:
        lines.append(f'<li style="color: #999;">...and {len(items) - limit} more</li>')
    return (
        f'<h3 style="margin: 20px 0 8px 0; font-size: 15px;">'
        f"{escape(heading)} ({len(items)})</h3>"
        f'<ul style="margin: 0; padding-left: 20px; color: #555; font-size: 14px;">'
        f"{''.join(lines)}</ul>"
    )


def build_session_email_html(session: Session) -> str:
    """Notification body for one finished session."""
    rows = [
        ("Duration", escape(format_duration(session.duration))),
        ("Project", escape(session.project_name)),
        ("Branch", escape(session.branch)),
        ("Feature", escape(session.feature)),
        ("Start", escape(format_datetime(session.start_time))),
        ("End", escape(format_datetime(session.end_time))),
        ("End Reason", escape(session.end_reason.value)),
    ]
    if session.pr_url:
        url = escape(session.pr_url)
        rows.append(("PR", f'<a href="{url}" style="color: #6b4fbb;">{url}</a>'))

    parts = [
        '<table style="width: 100%; border-collapse: collapse;">',
        "".join(ROW.format(label=label, value=value) for label, value in rows),
        "</table>",
    ]
    if session.conversation_summary:
        parts.append(
            '<div style="margin-top: 20px; padding: 16px; background: #f0f0ff; '
            'border-radius: 8px;"><h3 style="margin: 0 0 8px 0; font-size: 15px;">'
            "Conversation Summary</h3>"
            f'<p style="margin: 0;">{escape(session.conversation_summary)}</p></div>'
        )
    parts.append(_item_list("Commits", session.commits, "No commits during session"))
    parts.append(
        _item_list(
            "Changed Files",
            session.changed_files,
            "No file changes detected",
            limit=MAX_FILES_LISTED,
        )
    )

    return _page(
        "Claude Session Report",
        f"{session.project_name}: {session.feature}",
        "\n".join(parts),
        f"Sent by Claude Tracker. Session ID: {session.id[:8]}",
    )


def build_report_html(title: str, sessions: List[Session], period_label: str) -> str:
    """Period report: totals per project followed by every session."""
    total_seconds = sum(s.duration.total_seconds() for s in sessions)

    by_project: Dict[str, List[Session]] = {}
    for session in sessions:
        by_project.setdefault(session.project_name, []).append(session)

    project_rows = "".join(
        "<tr>"
        f'<td style="padding: 8px 12px; font-weight: 500;">{escape(name)}</td>'
        f'<td style="padding: 8px 12px; text-align: center;">{len(group)}</td>'
        f'<td style="padding: 8px 12px; text-align: right;">'
        f"{format_duration(sum(s.duration.total_seconds() for s in group))}</td>"
        "</tr>"
        for name, group in by_project.items()
    )
    session_rows = "".join(
        "<tr>"
        f'<td style="padding: 6px 12px;">{escape(s.project_name)}</td>'
        f'<td style="padding: 6px 12px;">{escape(s.feature)}</td>'
        f'<td style="padding: 6px 12px; text-align: right;">{format_duration(s.duration)}</td>'
        f'<td style="padding: 6px 12px;">{escape(format_datetime(s.start_time))}</td>'
        "</tr>"
        for s in sessions
    )

    if sessions:
        body = (
            f'<p style="font-size: 16px;"><strong>{len(sessions)}</strong> sessions, '
            f"<strong>{format_duration(total_seconds)}</strong> total</p>"
            '<h3 style="font-size: 15px;">By Project</h3>'
            '<table style="width: 100%; border-collapse: collapse;">'
            "<tr><th align=\"left\">Project</th><th>Sessions</th>"
            '<th align="right">Time</th></tr>'
            f"{project_rows}</table>"
            '<h3 style="font-size: 15px;">Sessions</h3>'
            '<table style="width: 100%; border-collapse: collapse;">'
            '<tr><th align="left">Project</th><th align="left">Feature</th>'
            '<th align="right">Duration</th><th align="left">Started</th></tr>'
            f"{session_rows}</table>"
        )
    else:
        body = '<p style="color: #999;">No sessions recorded in this period.</p>'

    return _page(title, period_label, body, "Sent by Claude Tracker")
