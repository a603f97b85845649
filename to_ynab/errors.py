class ToYnabError(Exception):
    """Base class for every failure that aborts the conversion of a single file."""


class InvalidSourceError(ToYnabError):
    pass


class InvalidDateFormatError(ToYnabError):
    pass


class InvalidCutoffDateError(ToYnabError):
    pass


class MissingInputError(ToYnabError):
    pass


class InvalidExtensionError(ToYnabError):
    pass


class EmptyInputError(ToYnabError):
    pass


class HeaderMismatchError(ToYnabError):
    pass


class NoMatchingSourceError(ToYnabError):
    pass


class EmptyHeaderOnlyError(ToYnabError):
    pass


class WriteError(ToYnabError):
    pass
