"""ocr-overlay-matcher – CLI zum Abgleich von OCR-Text mit dem Turnier-Roster."""

import argparse
import logging
import sys
from pathlib import Path

from ocrmatch.config import load_config
from ocrmatch.engine import MatchEngine, replay_events
from ocrmatch.index import RosterIndexHolder
from ocrmatch.lint import DEFAULT_AMBIGUITY_THRESHOLD, count_by_code, lint_roster
from ocrmatch.reader import load_roster, read_events, read_roster
from ocrmatch.reporter import (
    print_summary,
    write_csv_report,
    write_html_report,
    write_lint_report,
)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description='Abgleich von OCR-Text mit dem Turnier-Roster fuer das Video-Overlay.',
        prog='matcher.py',
    )
    parser.add_argument(
        '--config', type=Path,
        help='Pfad zur YAML-Konfiguration',
    )
    parser.add_argument(
        '--match-threshold', type=float,
        help='Schwellenwert fuer einen Treffer (Standard: 0.75)',
    )
    parser.add_argument(
        '--hold-misses', type=int,
        help='Aussetzer, bevor ein Treffer verworfen wird (Standard: 5)',
    )
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help='Ausfuehrliche Ausgabe',
    )
    sub = parser.add_subparsers(dest='command', required=True)

    replay = sub.add_parser('replay', help='Aufgezeichnete OCR-Events abspielen')
    replay.add_argument(
        '--roster', type=Path,
        help='Pfad zur Roster-JSON-Datei (sonst aus Konfiguration)',
    )
    replay.add_argument(
        '--events', required=True, type=Path,
        help='Pfad zur Event-Datei (JSON-Lines)',
    )
    replay.add_argument(
        '--output', required=True, type=Path,
        help='Pfad fuer die Report-Ausgabe (CSV)',
    )
    replay.add_argument(
        '--html', action='store_true',
        help='Zusaetzlich einen HTML-Report erzeugen',
    )
    replay.add_argument(
        '--summary', action='store_true',
        help='Zusammenfassung auf stdout ausgeben',
    )

    lint = sub.add_parser('lint', help='Roster auf Probleme pruefen')
    lint.add_argument(
        '--roster', type=Path,
        help='Pfad zur Roster-JSON-Datei (sonst aus Konfiguration)',
    )
    lint.add_argument(
        '--output', type=Path,
        help='Pfad fuer die Report-Ausgabe (CSV)',
    )
    lint.add_argument(
        '--threshold', type=float, default=DEFAULT_AMBIGUITY_THRESHOLD,
        help='Aehnlichkeit, ab der Namen als verwechselbar gelten (Standard: 0.9)',
    )

    serve = sub.add_parser('serve', help='Overlay-Service starten')
    serve.add_argument('--host', help='Host-Adresse')
    serve.add_argument('--port', type=int, help='Port')
    serve.add_argument('--roster', type=Path, help='Pfad zur Roster-JSON-Datei')
    serve.add_argument('--roster-url', help='URL des Roster-Endpunkts')

    return parser


def run_replay(config, args) -> None:
    """Replay an event log against the roster and write the reports."""
    teams = read_roster(args.roster) if args.roster else load_roster(config)
    holder = RosterIndexHolder()
    holder.rebuild(teams)

    engine = MatchEngine.from_config(holder, config)
    rows = replay_events(engine, read_events(args.events))

    write_csv_report(rows, args.output)

    if args.html:
        html_path = args.output.with_suffix('.html')
        write_html_report(rows, html_path, args.events.stem)

    if args.summary:
        print_summary(rows, args.events.name)


def run_lint(config, args) -> int:
    """Check the roster; returns the process exit code."""
    teams = read_roster(args.roster) if args.roster else load_roster(config)
    issues = lint_roster(teams, args.threshold)

    if args.output:
        write_lint_report(issues, args.output)

    for issue in issues:
        logging.warning(
            "%s: %s %s %s", issue.code, issue.team, issue.player, issue.detail,
        )
    for code, count in sorted(count_by_code(issues).items()):
        print(f"{code:<24}{count:>5}")
    return 1 if issues else 0


def run_serve(config) -> None:
    """Run the overlay service with uvicorn."""
    import uvicorn

    from ocrmatch.app import create_app

    uvicorn.run(create_app(config), host=config.host, port=config.port)


def main() -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    overrides = {
        'match_threshold': args.match_threshold,
        'hold_misses': args.hold_misses,
    }
    if args.command == 'serve':
        overrides.update(
            host=args.host,
            port=args.port,
            roster_path=str(args.roster) if args.roster else None,
            roster_url=args.roster_url,
        )

    try:
        config = load_config(args.config, **overrides)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level.upper(),
        format='%(levelname)s: %(message)s',
    )

    if args.command in ('replay', 'lint') and not args.roster:
        if not (config.roster_path or config.roster_url):
            parser.error('--roster ist erforderlich, wenn keine Roster-Quelle konfiguriert ist.')

    if args.command == 'replay':
        run_replay(config, args)
    elif args.command == 'lint':
        sys.exit(run_lint(config, args))
    elif args.command == 'serve':
        run_serve(config)


if __name__ == '__main__':
    main()
