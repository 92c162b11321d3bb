from nethermind.flashpool.exceptions import FullMathRevert

from .shared import UINT_256_MAX


class FullMathModule:
    """Math Module for computing (a * b / denominator) with uint256 behavior and a 512 bit intermediate product"""

    @classmethod
    def mul_div(cls, numerator_1: int, numerator_2: int, denominator: int) -> int:
        """
        Computes the result of (numerator_1 * numerator_2) / denominator.
        Returns value as uint256, rounded down
        """
        if denominator == 0:
            raise FullMathRevert("Division By Zero")
        if numerator_1 < 0 or numerator_2 < 0 or denominator < 0:
            raise FullMathRevert("FullMath operands must be unsigned")

        result = (numerator_1 * numerator_2) // denominator
        if result > UINT_256_MAX:
            raise FullMathRevert(f"Value {result} overflows UINT256")
        return result

    @classmethod
    def mul_div_rounding_up(cls, numerator_1: int, numerator_2: int, denominator: int) -> int:
        """
        Computes the result of (numerator_1 * numerator_2) / denominator.
        Returns value as uint256 rounded up
        """
        result = cls.mul_div(numerator_1, numerator_2, denominator)

        if (numerator_1 * numerator_2) % denominator > 0:
            if result >= UINT_256_MAX:
                raise FullMathRevert("Mul Div Rounding Up Overflows when Rounding")
            result += 1

        return result

    @classmethod
    def div_rounding_up(cls, numerator: int, denominator: int) -> int:
        """Unsigned division rounding towards positive infinity.  Mirrors UnsafeMath.divRoundingUp"""
        if denominator == 0:
            raise FullMathRevert("Division By Zero")
        return -(-numerator // denominator)
