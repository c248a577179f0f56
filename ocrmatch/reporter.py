"""Report generation for replay runs and roster checks (CSV, HTML, summary)."""

import csv
import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from ocrmatch.engine import ReplayRow
from ocrmatch.lint import LintIssue

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'templates'

CSV_COLUMNS = [
    'Event',
    'Accepted',
    'Tokens',
    'Player',
    'Team',
    'Score',
    'Held',
    'Miss_Count',
]

LINT_COLUMNS = ['Code', 'Team', 'Player', 'Detail']


def _row_to_dict(row: ReplayRow) -> dict:
    """Convert a ReplayRow to a flat dict for CSV/HTML output."""
    decision = row.decision
    return {
        'Event': str(row.event_no),
        'Accepted': 'ja' if row.accepted else 'nein',
        'Tokens': ', '.join(row.tokens),
        'Player': decision.player_name if decision else '',
        'Team': decision.team_name if decision else '',
        'Score': f'{decision.score:.4f}' if decision else '',
        'Held': 'ja' if row.held else '',
        'Miss_Count': str(row.miss_count),
        # Row state for highlighting in HTML
        '_state': _row_state(row),
    }


def _row_state(row: ReplayRow) -> str:
    if not row.accepted:
        return 'dropped'
    if row.decision is None:
        return 'none'
    return 'held' if row.held else 'match'


def write_csv_report(rows: list[ReplayRow], output_path: Path) -> None:
    """Write replay rows as a CSV report.

    Uses UTF-8 with BOM (utf-8-sig) and semicolon delimiter for
    compatibility with German Excel.

    Args:
        rows: Replay rows.
        output_path: Path for the output CSV file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8-sig') as f:
        writer = csv.DictWriter(
            f, fieldnames=CSV_COLUMNS, delimiter=';', extrasaction='ignore',
        )
        writer.writeheader()
        for row in rows:
            writer.writerow(_row_to_dict(row))

    log.info("CSV-Report geschrieben: %s (%d Zeilen)", output_path, len(rows))


def write_html_report(
    rows: list[ReplayRow],
    output_path: Path,
    event_name: str = '',
) -> None:
    """Write replay rows as an HTML report using Jinja2.

    Args:
        rows: Replay rows.
        output_path: Path for the output HTML file.
        event_name: Name of the event log (for the report title).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )
    template = env.get_template('report.html')

    html = template.render(
        event_name=event_name,
        rows=[_row_to_dict(r) for r in rows],
        stats=compute_stats(rows),
        columns=CSV_COLUMNS,
    )

    output_path.write_text(html, encoding='utf-8')
    log.info("HTML-Report geschrieben: %s", output_path)


def write_lint_report(issues: list[LintIssue], output_path: Path) -> None:
    """Write roster check results as a CSV report."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8-sig') as f:
        writer = csv.writer(f, delimiter=';')
        writer.writerow(LINT_COLUMNS)
        for issue in issues:
            writer.writerow([issue.code, issue.team, issue.player, issue.detail])

    log.info("Pruef-Report geschrieben: %s (%d Zeilen)", output_path, len(issues))


def compute_stats(rows: list[ReplayRow]) -> dict:
    """Compute summary statistics from replay rows."""
    states = [_row_state(r) for r in rows]
    switches = 0
    previous = None
    for row in rows:
        if not row.accepted:
            continue
        player = row.decision.player if row.decision else None
        if player is not previous:
            switches += 1
        previous = player

    return {
        'total': len(rows),
        'dropped': states.count('dropped'),
        'match': states.count('match'),
        'held': states.count('held'),
        'none': states.count('none'),
        'switches': switches,
        'players': len({
            (r.decision.team.id, r.decision.player.id)
            for r in rows if r.decision is not None
        }),
    }


def print_summary(rows: list[ReplayRow], event_name: str = '') -> None:
    """Print a summary of a replay run to stdout.

    Args:
        rows: Replay rows.
        event_name: Name of the event log.
    """
    stats = compute_stats(rows)

    print(f"\n=== Replay-Report: {event_name} ===")
    print(f"Events gesamt:             {stats['total']:>5}")
    print(f"Verworfen (ungueltig):     {stats['dropped']:>5}")
    print(f"Treffer:                   {stats['match']:>5}")
    print(f"Gehalten (Aussetzer):      {stats['held']:>5}")
    print(f"Kein Match:                {stats['none']:>5}")
    print("---")
    print(f"Wechsel der Anzeige:       {stats['switches']:>5}")
    print(f"Verschiedene Spieler:      {stats['players']:>5}")
    print()
