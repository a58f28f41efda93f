"""
Candidate Finder

Exact-identifier lookup of counterparty records.

A record on one side is a candidate for a record on the other when they
share a transaction number or a reference, compared case-sensitively.
There is no fuzziness here; fuzzy pairing lives in the confidence scorer.

The counterparty set is indexed once per run so each lookup is a couple of
dict hits rather than a scan. A lookup returning more than one record is
the multiple-candidate path of the classifier.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Iterable

from invoice_matching.schema import TransactionRecord

logger = logging.getLogger(__name__)


class CandidateIndex:
    """
    Hash index over a collection of records by transaction number and reference.

    Both identifiers of the indexed records go into one key space, so an
    invoice number recorded on the other side as a reference still pairs.
    """

    def __init__(self, records: Iterable[TransactionRecord]):
        self._records: List[TransactionRecord] = list(records)
        self._positions: Dict[int, int] = {}
        self._by_identifier: Dict[str, List[TransactionRecord]] = defaultdict(list)

        for position, record in enumerate(self._records):
            self._positions[record.handle] = position
            for key in self._keys(record):
                bucket = self._by_identifier[key]
                if not bucket or bucket[-1].handle != record.handle:
                    bucket.append(record)

        logger.debug(
            f"Indexed {len(self._records)} records under {len(self._by_identifier)} identifiers"
        )

    @staticmethod
    def _keys(record: TransactionRecord) -> List[str]:
        keys = []
        if record.transaction_number:
            keys.append(record.transaction_number)
        if record.reference and record.reference != record.transaction_number:
            keys.append(record.reference)
        return keys

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> List[TransactionRecord]:
        return list(self._records)

    def find_candidates(self, record: TransactionRecord) -> List[TransactionRecord]:
        """
        Return every indexed record sharing an identifier with `record`.

        Results are deduplicated by handle and kept in the indexed
        collection's input order. Records without any identifier have no
        candidates.
        """
        found: Dict[int, TransactionRecord] = {}
        for key in self._keys(record):
            for candidate in self._by_identifier.get(key, ()):
                found.setdefault(candidate.handle, candidate)

        if len(found) <= 1:
            return list(found.values())

        return sorted(found.values(), key=lambda c: self._positions[c.handle])


def find_candidates(
    record: TransactionRecord,
    counterparty_records: Iterable[TransactionRecord]
) -> List[TransactionRecord]:
    """One-off candidate lookup; build a CandidateIndex when looking up many records."""
    return CandidateIndex(counterparty_records).find_candidates(record)
