from datetime import date
from pathlib import Path

import pytest

from to_ynab.detector import detect_source, header_matches_source
from to_ynab.errors import (
    EmptyHeaderOnlyError,
    EmptyInputError,
    HeaderMismatchError,
    InvalidCutoffDateError,
    InvalidDateFormatError,
    InvalidExtensionError,
    InvalidSourceError,
    MissingInputError,
    NoMatchingSourceError,
    WriteError,
)
from to_ynab.models import ConversionOptions, SourceConfig
from to_ynab.pipeline import convert, convert_batch, detect_file, generate, validate_options
from to_ynab.sources import load_registry
from to_ynab.tokenizer import tokenize_row, tokenize_text

NORDEA_HEADER = "Bogført;Tekst;Rentedato;Beløb;Saldo"
NORDEA_CSV = (
    "Bogført;Tekst;Rentedato;Beløb;Saldo\n"
    "01-01-2023;Groceries;01-01-2023;-50,00;100,00\n"
)
YNAB_HEADER = "Date;Payee;Category;Memo;Outflow;Inflow"


@pytest.fixture
def registry():
    return load_registry(include_custom=False)


def string_options(**kwargs) -> ConversionOptions:
    return ConversionOptions(csv_string=True, write=False, **kwargs)


def test_tokenize_text():
    assert tokenize_text("a;b\r\nc;d\re;f\n\n") == ["a;b", "c;d", "e;f"]

    # whitespace only lines are kept
    assert tokenize_text("a;b\n \nc;d") == ["a;b", " ", "c;d"]

    with pytest.raises(EmptyInputError):
        tokenize_text("")

    with pytest.raises(EmptyInputError):
        tokenize_text("\r\n\n")


def test_tokenize_row_drops_empty_cells():
    assert tokenize_row("a;;b;", ";") == ["a", "b"]
    assert tokenize_row("a, b", ",") == ["a", " b"]


def test_every_source_detects_its_own_header(registry):
    for name, source in registry.items():
        header_line = source.delimiter.join(source.headers)
        assert header_matches_source(tokenize_row(header_line, source.delimiter), source)
        assert detect_source(header_line, registry) == name


def test_header_match_is_exact(registry):
    nordea = registry["nordea"]
    assert not header_matches_source(["bogført", "Tekst", "Rentedato", "Beløb", "Saldo"], nordea)
    assert not header_matches_source(["Bogført", "Tekst", "Rentedato", "Beløb"], nordea)
    assert not header_matches_source(["Bogført ", "Tekst", "Rentedato", "Beløb", "Saldo"], nordea)


def test_detect_source_without_match_lists_sources(registry):
    with pytest.raises(NoMatchingSourceError) as e:
        detect_source("Date;Amount;Text", registry, file="bank.csv")
    assert "bank.csv" in str(e.value)
    assert "[nordea,be_kbc,be_kbc_creditcard]" in str(e.value)


def test_nordea_conversion(registry):
    assert generate(NORDEA_CSV, string_options(), registry) == (
        "Date;Payee;Category;Memo;Outflow;Inflow\n01/01/2023;;;Groceries;50;\n"
    )


def test_conversion_is_idempotent(registry):
    options = string_options(payees=("groc",))
    assert generate(NORDEA_CSV, options, registry) == generate(NORDEA_CSV, options, registry)


def test_no_trailing_newline_when_input_has_none(registry):
    data = generate(NORDEA_CSV.rstrip("\n"), string_options(), registry)
    assert data == f"{YNAB_HEADER}\n01/01/2023;;;Groceries;50;"


def test_output_date_format(registry):
    data = generate(NORDEA_CSV, string_options(date_format="YYYY-MM-DD"), registry)
    assert data.splitlines()[1] == "2023-01-01;;;Groceries;50;"


def test_last_date_is_inclusive(registry):
    csv = (
        f"{NORDEA_HEADER}\n"
        "01-01-2023;Rent;01-01-2023;-500,00;1000,00\n"
        "15-01-2023;Salary;15-01-2023;2000,00;3000,00\n"
        "16-01-2023;Coffee;16-01-2023;-3,50;2996,50\n"
        "01-02-2023;Rent;01-02-2023;-500,00;2496,50\n"
    )
    result = convert(csv, string_options(last_date="15/01/2023"), registry)

    assert [r.memo for r in result.records] == ["Rent", "Salary"]
    assert result.skipped_rows == 2
    assert all(date(int(r.date[6:]), int(r.date[3:5]), int(r.date[:2])) <= date(2023, 1, 15) for r in result.records)


def test_invalid_date_defaults_to_today(registry):
    csv = f"{NORDEA_HEADER}\nnot a date;Groceries;01-01-2023;-50,00;100,00\n"
    data = generate(csv, string_options(today=date(2024, 5, 6)), registry)
    assert data.splitlines()[1] == "06/05/2024;;;Groceries;50;"


def test_invalid_date_is_cut_when_last_date_is_set(registry):
    csv = (
        f"{NORDEA_HEADER}\n"
        "not a date;Groceries;01-01-2023;-50,00;100,00\n"
        "01-01-2023;Rent;01-01-2023;-500,00;1000,00\n"
    )
    result = convert(csv, string_options(last_date="31/12/2030", today=date(2024, 5, 6)), registry)

    assert [r.memo for r in result.records] == ["Rent"]
    assert result.skipped_rows == 1


def test_missing_date_column_is_cut_when_last_date_is_set():
    registry = {
        "no_dates": SourceConfig(
            headers=("Memo", "Amount"),
            map={"memo": 0, "outflow": 1, "inflow": 1},
            dateformat="DD-MM-YYYY",
        )
    }
    csv = "Memo;Amount\nGroceries;-50,00\n"

    assert convert(csv, string_options(source="no_dates"), registry).records[0].date == ""
    assert convert(csv, string_options(source="no_dates", last_date="31/12/2030"), registry).records == []


def test_payee_candidates_are_matched_against_memo(registry):
    csv = f"{NORDEA_HEADER}\n01-01-2023;UBER TRIP 123;01-01-2023;-12,40;100,00\n"
    result = convert(csv, string_options(payees=("lyft", "uber", "trip")), registry)
    assert result.records[0].payee == "uber"

    result = convert(csv, string_options(payees=("lyft",)), registry)
    assert result.records[0].payee == ""


def test_memo_whitespace_is_collapsed(registry):
    csv = f"{NORDEA_HEADER}\n01-01-2023;Card   purchase \t Netto;01-01-2023;-50,00;100,00\n"
    result = convert(csv, string_options(), registry)
    assert result.records[0].memo == "Card purchase Netto"


def test_positive_amount_is_inflow(registry):
    csv = f"{NORDEA_HEADER}\n01-01-2023;Salary;01-01-2023;2000,50;2100,00\n"
    record = convert(csv, string_options(), registry).records[0]
    assert record.outflow == ""
    assert record.inflow == "2000.5"


def test_be_kbc_conversion(registry):
    header = registry["be_kbc"].delimiter.join(registry["be_kbc"].headers)
    row = (
        "BE12 3456 7890 1234;Zichtrekening;JAN PEETERS;EUR;2023001;02/01/2023;"
        "BETALING  VIA  BANCONTACT DELHAIZE;03/01/2023;-23,45;976,55;credit;debet;"
        "BE98;GEBABEBB;DELHAIZE;BRUSSEL;+++000/0000/00000+++;boodschappen"
    )
    result = convert(f"{header}\n{row}", string_options(source="be_kbc", payees=("delhaize",)), registry)

    assert result.source_name == "be_kbc"
    record = result.records[0]
    assert record.date == "03/01/2023"
    assert record.payee == "delhaize"
    assert record.memo == "BETALING VIA BANCONTACT DELHAIZE"
    assert record.outflow == "23.45"
    assert record.inflow == ""


def test_empty_cell_shifts_columns(registry):
    # Known limitation: empty cells are dropped before columns are mapped
    csv = f"{NORDEA_HEADER}\n01-01-2023;;01-01-2023;-50,00;100,00\n"
    record = convert(csv, string_options(), registry).records[0]
    assert record.memo == "01-01-2023"
    assert record.outflow == ""
    assert record.inflow == "100"


def test_header_only_file(registry):
    with pytest.raises(EmptyHeaderOnlyError):
        convert(f"{NORDEA_HEADER}\n", string_options(), registry)

    with pytest.raises(EmptyHeaderOnlyError):
        convert(f"{NORDEA_HEADER}\n", string_options(source=None), registry)


def test_header_mismatch(registry):
    with pytest.raises(HeaderMismatchError) as e:
        convert(NORDEA_CSV, string_options(source="be_kbc"), registry)
    assert "Rekeningnummer;Rubrieknaam" in str(e.value)


def test_unknown_header_in_detection_mode(registry):
    with pytest.raises(NoMatchingSourceError) as e:
        convert("Date;Amount\n01-01-2023;12\n", string_options(source=None), registry)
    assert "nordea,be_kbc,be_kbc_creditcard" in str(e.value)


def test_unknown_header_names_the_file(registry):
    with pytest.raises(NoMatchingSourceError) as e:
        convert("Date;Amount\n01-01-2023;12\n", string_options(source=None), registry, label="march.csv")
    assert str(e.value).startswith("march.csv - No matching source found")


def test_detection_mode(registry):
    result = convert(NORDEA_CSV, string_options(source=None), registry)
    assert result.source_name == "nordea"


def test_explicit_delimiter_overrides_source(registry):
    csv = NORDEA_CSV.replace(";", "|")
    assert convert(csv, string_options(delimiter="|"), registry).records[0].outflow == "50"

    with pytest.raises(HeaderMismatchError):
        convert(csv, string_options(), registry)


def test_option_validation(registry):
    with pytest.raises(InvalidSourceError) as e:
        validate_options(ConversionOptions(source="unknown_bank"), registry)
    assert "nordea,be_kbc,be_kbc_creditcard" in str(e.value)

    with pytest.raises(InvalidDateFormatError):
        validate_options(ConversionOptions(date_format="DD/MM/YY"), registry)

    with pytest.raises(InvalidCutoffDateError):
        validate_options(ConversionOptions(last_date="2023-01-15"), registry)

    with pytest.raises(InvalidCutoffDateError):
        validate_options(ConversionOptions(last_date="1/1/2023"), registry)

    assert validate_options(ConversionOptions(output="export.CSV"), registry).output == "export"


def test_output_directory(registry, tmp_path: Path):
    validated = validate_options(ConversionOptions(output=str(tmp_path)), registry)
    assert validated.path == str(tmp_path)
    assert validated.output == "ynab"


def test_load_errors(registry, tmp_path: Path):
    with pytest.raises(MissingInputError):
        convert("", string_options(), registry)

    with pytest.raises(MissingInputError):
        convert(None, ConversionOptions(write=False), registry)

    with pytest.raises(MissingInputError):
        convert(str(tmp_path / "missing.csv"), ConversionOptions(write=False), registry)

    text_file = tmp_path / "bank.txt"
    text_file.write_text(NORDEA_CSV, encoding="utf-8")
    with pytest.raises(InvalidExtensionError):
        convert(str(text_file), ConversionOptions(write=False), registry)

    with pytest.raises(EmptyInputError):
        convert("\n\n", string_options(), registry)


def test_write_output_file(registry, tmp_path: Path):
    bank_file = tmp_path / "bank.CSV"
    bank_file.write_text(NORDEA_CSV, encoding="utf-8")

    message = generate(str(bank_file), ConversionOptions(output=str(tmp_path / "out.csv")), registry)

    output_file = tmp_path / "out.csv"
    assert message == f"File {output_file} written successfully!"
    assert output_file.read_text(encoding="utf-8") == f"{YNAB_HEADER}\n01/01/2023;;;Groceries;50;\n"


def test_write_error(registry, tmp_path: Path):
    options = ConversionOptions(csv_string=True, path=str(tmp_path / "missing_dir"))
    with pytest.raises(WriteError):
        convert(NORDEA_CSV, options, registry)


def test_detect_file_preserves_filename(registry, tmp_path: Path):
    bank_file = tmp_path / "march.csv"
    bank_file.write_text(NORDEA_CSV, encoding="utf-8")

    raw, options = detect_file(str(bank_file), ConversionOptions(source=None, preserve_filename=True), registry)

    assert raw == NORDEA_CSV
    assert options.source == "nordea"
    assert options.csv_string
    assert options.output == "ynab_march.csv"
    assert options.path == str(tmp_path)


def test_batch_continues_after_failure(registry, tmp_path: Path):
    bad_file = tmp_path / "a_unknown.csv"
    bad_file.write_text("Date;Amount\n01-01-2023;12\n", encoding="utf-8")
    good_file = tmp_path / "b_nordea.csv"
    good_file.write_text(NORDEA_CSV, encoding="utf-8")

    seen = []
    report = convert_batch(
        [str(bad_file), str(good_file)],
        ConversionOptions(source=None, preserve_filename=True),
        registry,
        on_result=seen.append,
    )

    assert report.exit_code == 1
    assert [o.ok for o in seen] == [False, True]
    assert isinstance(report.failed[0].error, NoMatchingSourceError)
    assert (tmp_path / "ynab_b_nordea.csv").read_text(encoding="utf-8").startswith(YNAB_HEADER)


def test_empty_batch_fails(registry):
    assert convert_batch([], ConversionOptions(), registry).exit_code == 1
