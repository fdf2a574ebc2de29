"""Calculator handlers: plain, multi-value, trailing-error and async."""
import asyncio
from dataclasses import dataclass
from typing import Optional


@dataclass
class Stats:
    count: int
    total: float
    mean: float


class Calculator:
    def add(self, a: int, b: int) -> int:
        return a + b

    def divide(self, a: int, b: int) -> tuple[int, Optional[Exception]]:
        if b == 0:
            return 0, ZeroDivisionError("division by zero")
        return a // b, None

    def divmod(self, a: int, b: int) -> tuple[int, int]:
        return a // b, a % b

    def stats(self, values: list[float]) -> Stats:
        total = sum(values)
        return Stats(count=len(values), total=total, mean=total / len(values) if values else 0.0)

    async def slow_square(self, value: int, delay: float) -> int:
        await asyncio.sleep(delay)
        return value * value
