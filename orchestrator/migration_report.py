"""
Migration report generator for import runs.

Builds a report from the statistics returned by MigrationOrchestrator.run and
formats it for console display or JSON export.
"""

import logging
import json
from typing import Dict, List, Any, Optional
from datetime import datetime

logger = logging.getLogger('kibela_importer.orchestrator.migration_report')


class MigrationReport:
    """Generates a report summarizing one import run."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('kibela_importer.orchestrator.migration_report')

    def generate_report(self, stats: Dict[str, Any], exported_from: Optional[str] = None) -> Dict[str, Any]:
        """
        Generate migration report.

        Args:
            stats: Statistics returned by MigrationOrchestrator.run
            exported_from: Subdomain of the source team

        Returns:
            Migration report dictionary
        """
        report = {
            'summary': self._build_summary(stats, exported_from),
            'records': {
                'total': stats.get('records', 0),
                'by_type': dict(stats.get('records_by_type', {}))
            },
            'resolver': dict(stats.get('resolver', {})),
            'errors': self._build_error_summary(stats),
            'transaction_log': {
                'path': stats.get('log_file'),
                'kept': stats.get('log_kept', False)
            },
            'timestamp': datetime.now().isoformat()
        }

        self.logger.debug(
            f"Report generated: {report['summary']['success']} created, "
            f"{report['summary']['failure']} failed"
        )
        return report

    def _build_summary(self, stats: Dict[str, Any], exported_from: Optional[str]) -> Dict[str, Any]:
        processed = stats.get('processed', 0)
        attempted = processed - stats.get('skipped', 0)
        duration = stats.get('duration_seconds', stats.get('elapsed_time', 0.0))

        summary = {
            'run_id': stats.get('run_id'),
            'mode': stats.get('mode'),
            'exported_from': exported_from,
            'entries': processed,
            'entries_succeeded': stats.get('entries_succeeded', 0),
            'drafts_skipped': stats.get('skipped', 0),
            'success': stats.get('success', 0),
            'failure': stats.get('failure', stats.get('failed', 0)),
            'bytes': stats.get('bytes', 0),
            'data_size_mib': round(stats.get('bytes', 0) / 1024 ** 2, 2),
            'duration_seconds': duration,
            'duration_formatted': self._format_duration(duration)
        }

        if attempted > 0:
            summary['success_rate'] = stats.get('entries_succeeded', 0) / attempted

        return summary

    def _build_error_summary(self, stats: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [dict(error) for error in stats.get('errors', [])]

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("IMPORT REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Mode:        {summary.get('mode', 'unknown')}")
        if summary.get('exported_from'):
            sections.append(f"  Source:      https://{summary['exported_from']}.kibe.la")
        sections.append(f"  Entries:     {summary.get('entries', 0)}")
        sections.append(f"  Drafts:      {summary.get('drafts_skipped', 0)} skipped")
        sections.append(f"  Created:     {summary.get('success', 0)}")
        sections.append(f"  Failed:      {summary.get('failure', 0)}")
        sections.append(f"  Data:        {summary.get('data_size_mib', 0)} MiB")
        sections.append(f"  Duration:    {summary.get('duration_formatted', '0s')}")

        if 'success_rate' in summary:
            success_rate = summary['success_rate'] * 100
            sections.append(f"  Success:     {success_rate:.1f}%")

        sections.append("")

        records = report.get('records', {})
        by_type = records.get('by_type', {})
        sections.append("Created Entities:")
        sections.append("-" * 60)
        for record_type in ('attachment', 'note', 'comment'):
            sections.append(f"  {record_type.capitalize() + 's:':<13}{by_type.get(record_type, 0)}")

        resolver = report.get('resolver', {})
        if resolver:
            sections.append("")
            sections.append("Dependencies:")
            sections.append("-" * 60)
            sections.append(
                f"  Authors:     {resolver.get('authors_found', 0)} found, "
                f"{resolver.get('authors_created', 0)} created as disabled users"
            )
            sections.append(
                f"  Groups:      {resolver.get('groups_found', 0)} existing, "
                f"{resolver.get('groups_created', 0)} created"
            )

        errors = report.get('errors', [])
        if errors:
            sections.append("")
            sections.append(f"Errors ({len(errors)}):")
            sections.append("-" * 60)
            for error in errors[:10]:
                sections.append(f"  [{error.get('entry')}] {error.get('path')}: {error.get('error')}")
            if len(errors) > 10:
                sections.append(f"  ... and {len(errors) - 10} more")

        log_info = report.get('transaction_log', {})
        sections.append("")
        if log_info.get('kept'):
            sections.append(f"Transaction log: {log_info.get('path')}")
        else:
            sections.append("Transaction log: not kept")

        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")
