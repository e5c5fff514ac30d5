"""
Batch filename rule.

The new name is composed in one fixed order (prefix, base name, numbering,
suffix, find/replace, case conversion, extension) no matter which toggles
are set. Pure and total: no I/O, and bad option values have already been
replaced by defaults in RenameOptions.
"""
import re

from scalpel.schemas.rename import RenameOptions

_TITLE_WORD = re.compile(r"\w\S*")


def _title_case(name: str) -> str:
    return _TITLE_WORD.sub(lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), name)


def _sentence_case(name: str) -> str:
    return name[:1].upper() + name[1:].lower()


_CASE_CONVERTERS = {
    "lowercase": str.lower,
    "UPPERCASE": str.upper,
    "Title Case": _title_case,
    "Sentence case": _sentence_case,
}


def extension_of(original_name: str) -> str:
    """Text after the last dot, or "" when there is none."""
    if "." not in original_name:
        return ""
    return original_name.rsplit(".", 1)[1]


def format_number(number: int, digits: int) -> str:
    return str(number).rjust(digits, "0")


def rename(original_name: str, index: int, options: RenameOptions) -> str:
    name = ""
    if options.add_prefix:
        name += options.prefix_text

    name += options.base_name

    if options.add_numbering:
        name += options.number_separator + format_number(options.start_number + index, options.number_digits)

    if options.add_suffix:
        name += options.suffix_text

    if options.find_replace and options.find_text:
        flags = 0 if options.match_case else re.IGNORECASE
        replacement = options.replace_text
        name = re.sub(re.escape(options.find_text), lambda _: replacement, name, flags=flags)

    if options.convert_case:
        convert = _CASE_CONVERTERS.get(options.case_type)
        if convert is not None:
            name = convert(name)

    if options.change_extension and options.new_extension:
        extension = options.new_extension
    else:
        extension = extension_of(original_name)

    # no extension still yields a trailing "."
    return name + "." + extension
