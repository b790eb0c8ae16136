#!/usr/bin/env python3
"""
Template code usage across a batch of files.

Usage is built as a fold over (code, file, name) claims so the batch layer
can extract files in parallel and merge the results in one place. Conflicts
are only reported; suggested replacement codes are advisory.
"""

import re
from dataclasses import dataclass
from functools import reduce
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from metadata_locator import canonicalize_code

CANONICAL_CODE_PATTERN = re.compile(r'^([A-Z]{2})-(\d{3,4})$')
MAX_CODE_NUMBER = 999
DEFAULT_PREFIX = 'PM'


@dataclass(frozen=True)
class CodeClaim:
    code: str
    source_file: str
    name: str

    def to_dict(self):
        return {'code': self.code, 'source_file': self.source_file, 'name': self.name}


@dataclass(frozen=True)
class SharedCodeFamily:
    """Templates that deliberately share one code, told apart by name."""

    code: str
    members: Tuple[str, ...]

    def matches(self, name: str) -> bool:
        lowered = name.lower()
        return any(
            all(word in lowered for word in member.lower().split())
            for member in self.members
        )


DEFAULT_SHARED_CODE_FAMILIES = (
    SharedCodeFamily('PM-017', ('cctv annual', 'cctv monthly')),
)

CodeUsage = Mapping[str, Tuple[CodeClaim, ...]]


def normalize_name(name: str) -> str:
    return ' '.join((name or '').lower().split())


def register_claim(usage: CodeUsage, claim: CodeClaim) -> Dict[str, Tuple[CodeClaim, ...]]:
    """Fold step: return a new usage map with ``claim`` added if it is new."""
    updated = dict(usage)
    if not claim.code:
        return updated
    code = canonicalize_code(claim.code) or claim.code
    claim = CodeClaim(code, claim.source_file, claim.name)
    existing = updated.get(code, ())
    if any(c.source_file == claim.source_file and c.name == claim.name for c in existing):
        return updated
    updated[code] = existing + (claim,)
    return updated


def build_code_usage(claims: Iterable[CodeClaim],
                     prior: Iterable[CodeClaim] = ()) -> Dict[str, Tuple[CodeClaim, ...]]:
    """Prior-state claims first, then the batch, in the order given."""
    return reduce(register_claim, list(prior) + list(claims), {})


def _is_shared_family(code: str, names: Sequence[str],
                      families: Sequence[SharedCodeFamily]) -> bool:
    for family in families:
        if family.code == code and all(family.matches(name) for name in names):
            return True
    return False


def find_conflicts(usage: CodeUsage,
                   families: Sequence[SharedCodeFamily] = DEFAULT_SHARED_CODE_FAMILIES
                   ) -> Dict[str, List[CodeClaim]]:
    conflicts = {}
    for code in sorted(usage):
        claims = usage[code]
        distinct_names = {normalize_name(c.name) for c in claims}
        if len(distinct_names) < 2:
            continue
        if _is_shared_family(code, [c.name for c in claims], families):
            continue
        conflicts[code] = list(claims)
    return conflicts


def used_numbers(codes: Iterable[str], prefix: str = DEFAULT_PREFIX) -> Set[int]:
    numbers = set()
    for code in codes:
        match = CANONICAL_CODE_PATTERN.match(code or '')
        if match and match.group(1) == prefix:
            numbers.add(int(match.group(2)))
    return numbers


def find_next_available_code(used: Iterable[str], start_from: int = 1,
                             prefix: str = DEFAULT_PREFIX,
                             limit: int = MAX_CODE_NUMBER) -> Optional[str]:
    """First ``<prefix>-<nnn>`` at or above ``start_from`` that nobody claims."""
    taken = used_numbers(used, prefix)
    for number in range(max(start_from, 1), limit + 1):
        if number not in taken:
            return f"{prefix}-{number:03d}"
    return None


def suggest_codes(conflicts: Mapping[str, Sequence[CodeClaim]], used: Iterable[str],
                  start_from: int = 1) -> List[Dict[str, str]]:
    """
    Propose a free code for every claimant but the first of each conflict.
    Suggestions are never applied here; each one is reserved so two
    suggestions never collide.
    """
    reserved = set(used)
    suggestions = []
    for code in sorted(conflicts):
        kept_name = None
        seen_names = set()
        for claim in conflicts[code]:
            name = normalize_name(claim.name)
            if kept_name is None:
                kept_name = name
                seen_names.add(name)
                continue
            if name in seen_names:
                continue
            seen_names.add(name)
            prefix = code.split('-', 1)[0]
            new_code = find_next_available_code(reserved, start_from, prefix=prefix)
            if new_code is None:
                continue
            reserved.add(new_code)
            suggestions.append({
                'code': code,
                'source_file': claim.source_file,
                'name': claim.name,
                'suggested_code': new_code
            })
    return suggestions


def parse_shared_code_families(raw: Iterable[Mapping]) -> Tuple[SharedCodeFamily, ...]:
    """Config entries look like {"code": "PM-017", "members": ["cctv annual", ...]}."""
    families = []
    for entry in raw:
        code = canonicalize_code(str(entry['code'])) or str(entry['code'])
        families.append(SharedCodeFamily(code, tuple(str(m) for m in entry['members'])))
    return tuple(families)
