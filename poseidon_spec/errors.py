"""Error kinds raised by the Poseidon engine.

All errors are local and synchronous: they are reported to the immediate
caller and a failed call never leaves partially updated state behind.
"""


class PoseidonError(Exception):
    """Base class for every error raised by this package."""


class InvalidEncoding(PoseidonError, ValueError):
    """Input could not be read as a field element (bad type, sign or width)."""


class ArityMismatch(PoseidonError, ValueError):
    """State width and parameter set (or round schedule) disagree."""


class InputTooLarge(PoseidonError, ValueError):
    """More inputs than the state can hold next to its capacity element."""


class WeakParameters(PoseidonError, RuntimeError):
    """Generated MDS matrix failed the distinctness or invertibility checks.

    Only raised during one-time parameter generation, never while hashing.
    """
