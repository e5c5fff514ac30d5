import pytest

from scalpel.core.rename import extension_of, rename
from scalpel.schemas.rename import RenameOptions


def opts(**kwargs) -> RenameOptions:
    return RenameOptions.model_validate(kwargs)


def test_defaults_keep_original_extension():
    assert rename("holiday.JPG", 0, RenameOptions()) == "file.JPG"


def test_numbering_padded_from_start_number():
    options = opts(addNumbering=True, startNumber=5, numberDigits=3)
    assert rename("a.txt", 0, options) == "file_005.txt"
    assert rename("a.txt", 7, options) == "file_012.txt"


def test_first_file_gets_start_number():
    options = opts(addNumbering=True)
    assert [rename("x.png", i, options) for i in range(3)] == ["file_01.png", "file_02.png", "file_03.png"]


def test_number_wider_than_digits_is_not_truncated():
    assert rename("a.txt", 0, opts(addNumbering=True, startNumber=1234, numberDigits=2)) == "file_1234.txt"


def test_full_composition_order():
    options = opts(
        baseName="report",
        addPrefix=True, prefixText="2024-",
        addSuffix=True, suffixText="-final",
        addNumbering=True, numberSeparator="#", numberDigits=3,
    )
    assert rename("draft.docx", 1, options) == "2024-report#002-final.docx"


def test_prefix_and_suffix_ignored_when_toggles_off():
    options = opts(prefixText="pre-", suffixText="-suf")
    assert rename("a.txt", 0, options) == "file.txt"


def test_find_replace_is_literal_and_case_insensitive_by_default():
    options = opts(baseName="a.b.A.B", findReplace=True, findText=".", replaceText="$&")
    assert rename("z.txt", 0, options) == "a$&b$&A$&B.txt"

    options = opts(baseName="Photo-photo", findReplace=True, findText="photo", replaceText="img")
    assert rename("z.txt", 0, options) == "img-img.txt"


def test_find_replace_match_case():
    options = opts(baseName="Photo-photo", findReplace=True, findText="photo", replaceText="img", matchCase=True)
    assert rename("z.txt", 0, options) == "Photo-img.txt"


def test_find_replace_applies_to_prefix_and_numbering():
    options = opts(addPrefix=True, prefixText="x_", addNumbering=True, findReplace=True, findText="_", replaceText="-")
    assert rename("a.txt", 0, options) == "x-file-01.txt"


def test_find_replace_skipped_for_empty_find_text():
    assert rename("a.txt", 0, opts(findReplace=True, findText="", replaceText="zzz")) == "file.txt"


@pytest.mark.parametrize("case_type,expected", [
    ("lowercase", "my holiday_01.txt"),
    ("UPPERCASE", "MY HOLIDAY_01.txt"),
    ("Title Case", "My Holiday_01.txt"),
    ("Sentence case", "My holiday_01.txt"),
])
def test_case_conversion(case_type, expected):
    options = opts(baseName="mY hoLIDAY", addNumbering=True, convertCase=True, caseType=case_type)
    assert rename("a.txt", 0, options) == expected


@pytest.mark.parametrize("case_type", ["lowercase", "UPPERCASE", "Title Case", "Sentence case"])
def test_case_conversion_is_idempotent(case_type):
    once = rename("a.txt", 0, opts(baseName="sUMMER tRIP-2024 x", convertCase=True, caseType=case_type))
    twice = rename("a.txt", 0, opts(baseName=once[:-len(".txt")], convertCase=True, caseType=case_type))
    assert once == twice


def test_case_conversion_does_not_touch_extension():
    options = opts(baseName="Scan", convertCase=True, caseType="UPPERCASE")
    assert rename("scan.pdf", 0, options) == "SCAN.pdf"


def test_unknown_case_type_is_noop():
    assert rename("a.txt", 0, opts(baseName="MiXed", convertCase=True, caseType="camelCase")) == "MiXed.txt"


def test_change_extension():
    assert rename("a.txt", 0, opts(changeExtension=True, newExtension="md")) == "file.md"
    # empty override falls back to the original extension
    assert rename("a.txt", 0, opts(changeExtension=True, newExtension="")) == "file.txt"
    # only applied when toggled
    assert rename("a.txt", 0, opts(newExtension="md")) == "file.txt"


def test_extension_rule_over_a_batch():
    names = ["one.png", "two.tar.gz", "three"]
    changed = opts(changeExtension=True, newExtension="bin", addNumbering=True)
    kept = opts(addNumbering=True)
    assert all(rename(n, i, changed).endswith(".bin") for i, n in enumerate(names))
    assert [rename(n, i, kept).rsplit(".", 1)[1] for i, n in enumerate(names)] == ["png", "gz", ""]


def test_name_without_extension_keeps_trailing_dot():
    assert rename("README", 0, RenameOptions()) == "file."
    assert extension_of("README") == ""
    assert extension_of("archive.tar.gz") == "gz"


def test_invalid_option_values_fall_back_to_defaults():
    options = opts(
        baseName=None,
        addNumbering="yes",
        startNumber="abc",
        numberDigits=-4,
        numberSeparator="",
        caseType=None,
        unknownField=123,
    )
    assert options.base_name == "file"
    assert options.start_number == 1
    assert options.number_digits == 2
    assert options.number_separator == "_"
    assert options.case_type == "lowercase"
    assert rename("a.txt", 0, options) == "file_01.txt"


def test_options_accept_snake_case_names():
    options = RenameOptions(base_name="scan", add_numbering=True, start_number=0)
    assert rename("a.pdf", 0, options) == "scan_00.pdf"
