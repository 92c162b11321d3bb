import logging

from nethermind.flashpool.exceptions import InvalidTick
from nethermind.flashpool.math import MAX_TICK, MIN_TICK, UINT_256_MAX

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("tick_bitmap")


def get_positions_from_word(word: int) -> list[int]:
    """Returns the set bit positions of a 256 bit word, from most to least significant"""
    output = []
    for i in reversed(range(256)):
        if (word >> i) & 1:
            output.append(i)
    return output


def _most_significant_bit(word: int) -> int:
    return word.bit_length() - 1


def _least_significant_bit(word: int) -> int:
    return (word & -word).bit_length() - 1


class TickBitmap:
    """
    Packed index of initialized ticks.  Ticks are compressed by the tick spacing, and stored as single bits in
    256 bit words keyed by ``compressed_tick >> 8``.  Empty words are not stored.
    """

    tick_spacing: int
    words: dict[int, int]

    def __init__(self, tick_spacing: int, words: dict[int, int] | None = None):
        self.tick_spacing = tick_spacing
        self.words = dict(words) if words else {}

    def compress(self, tick: int) -> int:
        """Divides the tick by the spacing, rounding towards negative infinity"""
        return tick // self.tick_spacing

    @staticmethod
    def position(compressed_tick: int) -> tuple[int, int]:
        """
        Returns the (word position, bit position) of a compressed tick

        :param compressed_tick: tick divided by the tick spacing
        """
        return compressed_tick >> 8, compressed_tick & 0xFF

    def flip_tick(self, tick: int):
        """
        Flips the initialized state of a tick

        :raises InvalidTick: if the tick is not a multiple of the tick spacing
        """
        if tick % self.tick_spacing != 0:
            raise InvalidTick(f"Tick {tick} is not a multiple of tick spacing {self.tick_spacing}")

        word_pos, bit_pos = self.position(tick // self.tick_spacing)
        word = self.words.get(word_pos, 0) ^ (1 << bit_pos)
        if word:
            self.words[word_pos] = word
        else:
            self.words.pop(word_pos, None)

    def is_initialized(self, tick: int) -> bool:
        if tick % self.tick_spacing != 0:
            return False
        word_pos, bit_pos = self.position(tick // self.tick_spacing)
        return bool((self.words.get(word_pos, 0) >> bit_pos) & 1)

    def next_initialized_tick_within_one_word(self, tick: int, lte: bool) -> tuple[int, bool]:
        """
        Returns the next initialized tick contained in the same word as the tick that is either to the left
        (less than or equal to) or right (greater than) of the given tick

        :param tick: starting tick
        :param lte: whether to search for the next initialized tick to the left (less than or equal to the tick)
        :return: (next tick, initialized).  If no tick is initialized in the word, the word boundary is returned
        """
        compressed = self.compress(tick)

        if lte:
            word_pos, bit_pos = self.position(compressed)
            mask = (1 << bit_pos) - 1 + (1 << bit_pos)
            masked = self.words.get(word_pos, 0) & mask

            initialized = masked != 0
            if initialized:
                next_tick = (compressed - (bit_pos - _most_significant_bit(masked))) * self.tick_spacing
            else:
                next_tick = (compressed - bit_pos) * self.tick_spacing
        else:
            word_pos, bit_pos = self.position(compressed + 1)
            mask = ~((1 << bit_pos) - 1) & UINT_256_MAX
            masked = self.words.get(word_pos, 0) & mask

            initialized = masked != 0
            if initialized:
                next_tick = (compressed + 1 + (_least_significant_bit(masked) - bit_pos)) * self.tick_spacing
            else:
                next_tick = (compressed + 1 + (255 - bit_pos)) * self.tick_spacing

        return next_tick, initialized

    def next_initialized_tick(self, tick: int, lte: bool, skip_ahead: int = 0) -> tuple[int, bool]:
        """
        Searches up to ``skip_ahead + 1`` words for the next initialized tick.  The search stops early at
        MIN_TICK and MAX_TICK.

        :param tick: starting tick
        :param lte: search direction.  True searches ticks less than or equal to the starting tick
        :param skip_ahead: number of additional empty words that may be skipped
        :return: (next tick, initialized)
        """
        next_tick, initialized = self.next_initialized_tick_within_one_word(tick, lte)
        for _ in range(skip_ahead):
            if initialized or next_tick <= MIN_TICK or next_tick >= MAX_TICK:
                break
            next_tick, initialized = self.next_initialized_tick_within_one_word(
                next_tick - 1 if lte else next_tick, lte
            )

        return next_tick, initialized

    def initialized_ticks(self) -> list[int]:
        """Returns every initialized tick in ascending order"""
        output = []
        for word_pos in sorted(self.words):
            for bit_pos in reversed(get_positions_from_word(self.words[word_pos])):
                output.append(((word_pos * 256) + bit_pos) * self.tick_spacing)
        return output
