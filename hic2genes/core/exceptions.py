"""
Custom exception classes for hic2genes.

Structural problems with inputs (wrong promoter source type, missing
coordinate columns, inconsistent chromosome naming) are fatal and raised
immediately. An empty overlap result is never an error.
"""

import numbers


class Hic2GenesError(Exception):
    """Base exception for all hic2genes errors."""
    pass


# ============================================================================
# Input / File errors
# ============================================================================

class FileFormatError(Hic2GenesError):
    """Raised when an input file has an unexpected or invalid format."""
    pass


class PeakFileFormatError(FileFormatError):
    """Raised when a BED/narrowPeak/broadPeak file is malformed."""
    pass


class InteractionFileFormatError(FileFormatError):
    """Raised when an interaction (paired-anchor) table cannot be parsed."""
    pass


class GTFParseError(FileFormatError):
    """Raised when a GTF/GFF annotation file cannot be parsed."""
    pass


# ============================================================================
# Data validation errors
# ============================================================================

class ValidationError(Hic2GenesError):
    """Raised when input data fails validation checks."""
    pass


class MissingRequiredFieldError(ValidationError):
    """Raised when a required column or record field is missing."""

    def __init__(self, column: str, dataframe_name: str = "DataFrame", available: list = None):
        available_str = f" Available columns: {available}" if available else ""
        super().__init__(
            f"Required field '{column}' not found in {dataframe_name}.{available_str}"
        )
        self.column = column
        self.available = available


class InvalidInputKindError(ValidationError):
    """Raised when an input is of a type the operation does not understand."""

    def __init__(self, kind: str, input_name: str = "input", expected: list = None):
        msg = f"Unsupported {input_name} of type '{kind}'"
        if expected:
            msg += f". Expected one of: {', '.join(expected)}"
        super().__init__(msg)
        self.kind = kind
        self.input_name = input_name


class InvalidIntervalError(ValidationError):
    """Raised when an interval has impossible coordinates."""

    def __init__(self, reason: str, input_name: str = "intervals", index=None):
        where = f" (record {index})" if index is not None else ""
        super().__init__(f"Invalid interval in {input_name}{where}: {reason}")
        self.input_name = input_name
        self.index = index


class SeqlevelsStyleError(ValidationError):
    """Raised when inputs use different chromosome naming conventions.

    Comparing ``chr1`` against ``1`` silently yields zero overlaps, so any
    mismatch is reported up front.
    """

    def __init__(self, styles: dict):
        detail = ", ".join(f"{name}={style}" for name, style in styles.items())
        super().__init__(
            f"Inconsistent chromosome naming styles: {detail}. "
            f"Normalize with normalize_seqlevels() before linking."
        )
        self.styles = styles


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is out of valid range."""

    def __init__(self, param: str, value, valid_range: str = ""):
        msg = f"Invalid value for '{param}': {value}"
        if valid_range:
            msg += f". Expected: {valid_range}"
        super().__init__(msg)
        self.param = param
        self.value = value


# ============================================================================
# Validation helpers
# ============================================================================

def validate_dataframe(df, name: str = "DataFrame", required_columns: list = None) -> None:
    """Check that ``df`` is a DataFrame carrying every column in ``required_columns``.

    An empty table is valid; an interaction set with no rows simply links
    to nothing.

    Raises
    ------
    ValidationError
        If df is None or not a DataFrame.
    MissingRequiredFieldError
        For the first required column that is absent.
    """
    import pandas as pd

    if df is None:
        raise ValidationError(f"No {name} provided")
    if not isinstance(df, pd.DataFrame):
        raise ValidationError(f"Expected DataFrame for {name}, got {type(df).__name__}")

    missing = [col for col in (required_columns or []) if col not in df.columns]
    if missing:
        raise MissingRequiredFieldError(missing[0], name, available=list(df.columns))


def validate_numeric_param(value, name: str, min_val=None, max_val=None, integer: bool = False) -> None:
    """Check a numeric parameter against its bounds.

    With ``integer=True`` the value must be a whole number (``-10.0`` is
    accepted, ``1.5``, ``"100"`` and booleans are not); base-pair distances
    and overlaps use this.

    Raises
    ------
    InvalidParameterError
        If the value has the wrong kind or is out of range.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidParameterError(name, repr(value), "a number")
    if integer and not float(value).is_integer():
        raise InvalidParameterError(name, value, "an integer number of bases")
    if min_val is not None and value < min_val:
        raise InvalidParameterError(name, value, f">= {min_val}")
    if max_val is not None and value > max_val:
        raise InvalidParameterError(name, value, f"<= {max_val}")
