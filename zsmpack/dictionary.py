"""
Line deduplication for the ZSM dictionary format.

Every distinct line payload is stored once. The pointer table holds one
address per original line, so the player can walk the full song while
repeated lines share storage.
"""

from dataclasses import dataclass
from typing import Dict, List

from .banking import BankAddress, BankAllocator
from .parser import ZsmLine

# Bytes per pointer table entry: [lo] [hi] [bank]
POINTER_SIZE = 3


@dataclass
class DedupEntry:
    """One distinct line payload and where it lives."""
    fingerprint: bytes
    count: int
    index: int
    address: BankAddress
    line: ZsmLine

    @property
    def size(self) -> int:
        return self.line.length

    @property
    def fingerprint_hex(self) -> str:
        return self.fingerprint.hex()


@dataclass(frozen=True)
class DictionaryStats:
    """Size accounting for a built dictionary."""
    line_count: int
    unique_count: int
    total_size: int
    unique_size: int

    @property
    def pointer_table_size(self) -> int:
        return self.line_count * POINTER_SIZE

    @property
    def output_size(self) -> int:
        return self.pointer_table_size + self.unique_size

    @property
    def duplicate_count(self) -> int:
        return self.line_count - self.unique_count

    @property
    def ratio(self) -> float:
        """Output size as a fraction of the uncompressed line data."""
        if self.total_size == 0:
            return 0.0
        return self.output_size / self.total_size


class LineDictionary:
    """
    Distinct lines in first-seen order plus the per-line pointer sequence.

    `entries` is append-only and ordered by DedupEntry.index; the
    fingerprint lookup only maps into it.
    """

    def __init__(self):
        self.entries: List[DedupEntry] = []
        self.pointers: List[BankAddress] = []
        self.lines: List[ZsmLine] = []
        self._lookup: Dict[bytes, int] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, fingerprint: bytes) -> bool:
        return fingerprint in self._lookup

    def get(self, fingerprint: bytes) -> DedupEntry:
        return self.entries[self._lookup[fingerprint]]

    def add(self, line: ZsmLine, allocator: BankAllocator) -> BankAddress:
        """Record one occurrence of `line`, allocating storage on first sight."""
        fingerprint = line.fingerprint
        index = self._lookup.get(fingerprint)

        if index is None:
            address = allocator.allocate(line.length)
            line.address = address
            index = len(self.entries)
            self.entries.append(DedupEntry(
                fingerprint=fingerprint,
                count=1,
                index=index,
                address=address,
                line=line,
            ))
            self._lookup[fingerprint] = index
        else:
            entry = self.entries[index]
            entry.count += 1
            address = entry.address

        self.lines.append(line)
        self.pointers.append(address)
        return address

    def stats(self) -> DictionaryStats:
        return DictionaryStats(
            line_count=len(self.lines),
            unique_count=len(self.entries),
            total_size=sum(line.length for line in self.lines),
            unique_size=sum(entry.size for entry in self.entries),
        )

    def most_repeated(self, limit: int = 10) -> List[DedupEntry]:
        """Entries ordered by descending occurrence count, ties by first sight."""
        ranked = sorted(self.entries, key=lambda e: (-e.count, e.index))
        return ranked[:limit]


def build_dictionary(lines: List[ZsmLine], allocator: BankAllocator = None) -> LineDictionary:
    """
    Deduplicate `lines` and assign banked addresses.

    The pointer table sits in front of the payloads, so its space is
    reserved before the first line is placed.
    """
    if allocator is None:
        allocator = BankAllocator()

    allocator.reserve(len(lines) * POINTER_SIZE)

    dictionary = LineDictionary()
    for line in lines:
        dictionary.add(line, allocator)

    return dictionary
