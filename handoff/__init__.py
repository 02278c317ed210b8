from .buffer import Buffer, ClosedBufferWriteError, Result, Terminated, TERMINATED, Yielded


__all__ = ("Buffer", "ClosedBufferWriteError", "Result", "Terminated", "TERMINATED", "Yielded")
