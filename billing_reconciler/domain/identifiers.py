"""Formatting and parsing of sequential document identifiers: {PREFIX}-{YYYYMMDD}-{NNN}"""

import re
from datetime import datetime
from typing import Dict, Optional

from billing_reconciler.config import settings
from billing_reconciler.domain.models import DocumentKind, ParsedIdentifier
from billing_reconciler.utils.date_utils import date_key


def prefix_for(kind: DocumentKind) -> str:
    return settings.identifier_prefixes[kind.value]


def day_prefix(kind: DocumentKind, created_at: datetime) -> str:
    """Common prefix of every identifier issued for that day, e.g. PRO-INV-20250110-"""
    return f"{prefix_for(kind)}-{date_key(created_at)}-"


def format_identifier(kind: DocumentKind, created_at: datetime, sequence: int) -> str:
    """Sequence is zero-padded to three digits and restarts at 1 every day"""
    if sequence < 1:
        raise ValueError(f"Sequence must start at 1, got {sequence}")
    return f"{day_prefix(kind, created_at)}{sequence:03d}"


def _patterns() -> Dict[DocumentKind, re.Pattern]:
    # Older releases wrote invoice numbers without the dash before the sequence
    return {
        kind: re.compile(rf"^{re.escape(prefix_for(kind))}-(\d{{8}})-?(\d{{3,}})$")
        for kind in DocumentKind
    }


def parse_identifier(identifier: str) -> Optional[ParsedIdentifier]:
    """Extract kind, day and sequence; None when the identifier is not in the new format"""
    for kind, pattern in _patterns().items():
        match = pattern.match(identifier)
        if match:
            return ParsedIdentifier(kind=kind, date_key=match.group(1), sequence=int(match.group(2)))
    return None
