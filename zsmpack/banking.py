"""
Banked address arithmetic for the compressed dictionary.

The player sees the dictionary through a paged window: every bank maps the
same range of CPU addresses (base_address .. base_address + window_size),
and data that runs past the end of the window continues at the start of the
next bank. Addresses are (bank, in-bank offset) pairs packed into 24 bits as
bank << 16 | offset.
"""

from dataclasses import dataclass

from .errors import BankOverflowError, DictionaryInvariantError, ZsmConfigError

DEFAULT_BANK = 1
DEFAULT_BASE_ADDRESS = 0xA000
DEFAULT_WINDOW_SIZE = 0x2000

MAX_BANK = 0xFF
MAX_OFFSET = 0xFFFF


@dataclass(frozen=True, order=True)
class BankAddress:
    """A (bank, offset) pair as the player addresses it."""
    bank: int
    offset: int

    @property
    def packed(self) -> int:
        if not (0 <= self.bank <= MAX_BANK and 0 <= self.offset <= MAX_OFFSET):
            raise DictionaryInvariantError(f"Address {self.bank:X}:{self.offset:X} does not fit in 24 bits")
        return (self.bank << 16) | self.offset

    @classmethod
    def from_packed(cls, value: int) -> 'BankAddress':
        return cls(bank=(value >> 16) & 0xFF, offset=value & 0xFFFF)

    def __str__(self) -> str:
        return f"{self.bank:02X}:{self.offset:04X}"


@dataclass(frozen=True)
class BankWindow:
    """Layout of the banked memory window the player reads from."""
    start_bank: int = DEFAULT_BANK
    base_address: int = DEFAULT_BASE_ADDRESS
    window_size: int = DEFAULT_WINDOW_SIZE

    def __post_init__(self):
        if not 0 <= self.start_bank <= MAX_BANK:
            raise ZsmConfigError(f"Start bank must be 0-{MAX_BANK} (got {self.start_bank})")
        if self.window_size <= 0:
            raise ZsmConfigError(f"Window size must be positive (got {self.window_size})")
        # A line may end exactly at base + window_size, so that address
        # must still be a 16-bit offset
        if self.base_address < 0 or self.base_address + self.window_size > MAX_OFFSET:
            raise ZsmConfigError(
                f"Window 0x{self.base_address:04X}+0x{self.window_size:X} "
                f"does not fit in a 16-bit address space")
        if self.start_bank == 0 and self.base_address == 0:
            # A pointer to 00:0000 cannot carry the -1 read bias
            raise ZsmConfigError("Window cannot start at bank 0, address 0x0000")

    @property
    def origin(self) -> BankAddress:
        return BankAddress(self.start_bank, self.base_address)

    def advance(self, address: BankAddress, length: int) -> BankAddress:
        """Move `address` forward by `length` bytes, wrapping into later banks."""
        bank = address.bank
        rel = address.offset - self.base_address + length
        while rel > self.window_size:
            rel -= self.window_size
            bank += 1
        return BankAddress(bank, rel + self.base_address)

    def linear(self, address: BankAddress) -> int:
        """Byte position of `address` relative to the window origin."""
        return ((address.bank - self.start_bank) * self.window_size
                + address.offset - self.base_address)


class BankAllocator:
    """
    Hands out consecutive addresses inside a BankWindow.

    Only the first occurrence of each distinct line is allocated; duplicates
    reuse the address of the first.
    """

    def __init__(self, window: BankWindow = None):
        self.window = window if window is not None else BankWindow()
        self.cursor = self.window.origin

    def reserve(self, length: int) -> None:
        """Skip `length` bytes (the pointer table in front of the payloads)."""
        self.cursor = self._checked(self.window.advance(self.cursor, length))

    def allocate(self, length: int) -> BankAddress:
        """Return the address for a `length`-byte line and move past it."""
        address = self.cursor
        self.cursor = self._checked(self.window.advance(self.cursor, length))
        return address

    @staticmethod
    def _checked(address: BankAddress) -> BankAddress:
        if address.bank > MAX_BANK:
            raise BankOverflowError(
                f"Dictionary does not fit: allocation reached bank 0x{address.bank:X}")
        return address
