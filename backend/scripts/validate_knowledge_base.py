#!/usr/bin/env python3
"""
Knowledge Base Validation Script.

Loads a knowledge-base snapshot the same way the service does at startup and
reports what would be served: record counts per country, category and
severity, plus every entry that would be quarantined.

Usage:
    python backend/scripts/validate_knowledge_base.py [--path PATH] [--strict] [--verbose]

Options:
    --path      Snapshot to validate (defaults to KNOWLEDGE_BASE_PATH)
    --strict    Treat quarantined records as a failure
    --verbose   Show detailed information about each record
"""

import argparse
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from culturacheck.core.config import get_settings
from culturacheck.knowledge.corpus_store import CorpusStore, QuarantinedRecord
from culturacheck.knowledge.types import Category, Country, KnowledgeRecord


@dataclass
class ValidationReport:
    """Result of validating one snapshot."""

    path: Path
    records: List[KnowledgeRecord] = field(default_factory=list)
    quarantined: List[QuarantinedRecord] = field(default_factory=list)

    @property
    def by_country(self) -> Dict[str, int]:
        return dict(Counter(r.country.value for r in self.records))

    @property
    def by_category(self) -> Dict[str, int]:
        return dict(Counter(r.category.value for r in self.records))

    @property
    def by_severity(self) -> Dict[str, int]:
        return dict(Counter(r.severity.value for r in self.records))

    @property
    def missing_countries(self) -> List[str]:
        """Countries with no records at all."""
        present = self.by_country
        return [c.value for c in Country if c.value not in present]

    @property
    def missing_categories(self) -> List[str]:
        present = self.by_category
        return [c.value for c in Category if c.value not in present]

    @property
    def is_clean(self) -> bool:
        return not self.quarantined

    def summary(self, verbose: bool = False) -> str:
        """Generate a human-readable summary."""
        lines = [
            "=" * 60,
            "KNOWLEDGE BASE VALIDATION REPORT",
            "=" * 60,
            f"Snapshot:              {self.path}",
            f"Loaded records:        {len(self.records)}",
            f"Quarantined records:   {len(self.quarantined)}",
            "-" * 60,
        ]

        lines.append("By severity:")
        for severity, count in sorted(self.by_severity.items()):
            lines.append(f"    {severity:<10} {count}")
        lines.append("By country:")
        for country, count in sorted(self.by_country.items(), key=lambda kv: -kv[1]):
            lines.append(f"    {country}  {count}")
        lines.append("By category:")
        for category, count in sorted(self.by_category.items(), key=lambda kv: -kv[1]):
            lines.append(f"    {category}  {count}")

        if self.missing_countries or self.missing_categories:
            lines.append("-" * 60)
            lines.append("COVERAGE GAPS:")
            for country in self.missing_countries:
                lines.append(f"  - no records for country {country}")
            for category in self.missing_categories:
                lines.append(f"  - no records for category {category}")

        if self.quarantined:
            lines.append("-" * 60)
            lines.append(f"✗ {len(self.quarantined)} records quarantined:")
            for entry in self.quarantined:
                lines.append(f"  [{entry.index}] {entry.record_id or '<no id>'}: {entry.reason}")
        else:
            lines.append("-" * 60)
            lines.append("✓ All records are valid!")

        if verbose:
            lines.append("-" * 60)
            lines.append("RECORDS:")
            for record in self.records:
                lines.append(
                    f"  {record.id} [{record.country.value}/{record.category.value}/"
                    f"{record.severity.value}] tags={', '.join(record.tags) or '-'}"
                )

        lines.append("=" * 60)
        return "\n".join(lines)


def validate(path: Path) -> ValidationReport:
    """
    Load a snapshot and collect the validation findings.

    Raises:
        CorpusLoadError: If the snapshot itself cannot be loaded
    """
    store = CorpusStore(path)
    records = store.load()
    return ValidationReport(path=path, records=list(records), quarantined=store.quarantined)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the validation script.

    Returns:
        Exit code: 0 if valid, 1 if records were quarantined under --strict,
        2 if the snapshot cannot be loaded
    """
    parser = argparse.ArgumentParser(
        description="Validate a knowledge-base snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Snapshot to validate (defaults to KNOWLEDGE_BASE_PATH)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when any record is quarantined",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed information",
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    logger = logging.getLogger("validate_knowledge_base")
    path = args.path or get_settings().knowledge_base_path

    try:
        report = validate(path)
    except Exception as e:
        logger.error(f"Validation failed: {e}")
        return 2

    print(report.summary(verbose=args.verbose))

    if args.strict and not report.is_clean:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
