from .core import (
    LockFrame,
    PoolKey,
    PoolState,
    Position,
    PositionKey,
    SwapParameters,
    SwapState,
    SwapStep,
    Tick,
)
