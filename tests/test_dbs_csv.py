# ruff: noqa: E501
import textwrap
from datetime import date

import pytest

from bankfeed import DateParseError, InvalidFormat, Transaction, parse_dbs_csv
from bankfeed.ingest.adapters.dbs_csv import build_description


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


POSB_CSV = _dedent(
    """
    Account Details For:,POSB Savings Account 123-45678-9
    Statement as at:,05 Apr 2024
    Available Balance:,"2,345.67"
    Ledger Balance:,"2,345.67"

    Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1,Transaction Ref2,Transaction Ref3
    05 Apr 2024,POS,12.30,,NETS QR PAYMENT,GRAB   SINGAPORE,
    03 Apr 2024,ITR,,1500.00,SALARY,ACME PTE LTD,
    03 Apr 2024,ICT,"1,000.00",,TO SAVINGS,,

    """
)

DBS_CSV = _dedent(
    """
    Account Details For:,DBS Multiplier Account 987-654321-0
    Statement as at:,25 Mar 2024

    Transaction Date,Statement Code,Reference,Debit Amount,Credit Amount,Client Reference,Additional Reference,Misc Reference
    24 Mar 2024,ITR,ITR,,50.00,,,
    22 Mar 2024,POS,ABC,8.80,,NTUC FAIRPRICE,,SINGAPORE
    """
)


def test_posb_snapshot():
    account = "POSB Savings Account 123-45678-9"
    assert parse_dbs_csv(POSB_CSV) == [
        Transaction(
            account=account,
            date=date(2024, 4, 3),
            description="ICT TO SAVINGS",
            absolute_amount=1000.0,
            is_debit=True,
        ),
        Transaction(
            account=account,
            date=date(2024, 4, 3),
            description="SALARY ACME PTE LTD",
            absolute_amount=1500.0,
            is_debit=False,
        ),
        Transaction(
            account=account,
            date=date(2024, 4, 5),
            description="POS NETS QR PAYMENT GRAB SINGAPORE",
            absolute_amount=12.3,
            is_debit=True,
        ),
    ]


def test_dbs_variant_uses_dbs_reference_columns():
    rows = parse_dbs_csv(DBS_CSV)
    assert [(t.date, t.description, t.signed_amount) for t in rows] == [
        (date(2024, 3, 22), "POS NTUC FAIRPRICE SINGAPORE", 8.8),
        # Only the ITR placeholder: the statement code is kept verbatim.
        (date(2024, 3, 24), "ITR", -50.0),
    ]
    assert {t.account for t in rows} == {"DBS Multiplier Account 987-654321-0"}
    assert not any(t.is_pending for t in rows)


def test_emits_rows_in_reverse_source_order():
    rows = parse_dbs_csv(POSB_CSV)
    assert [t.description for t in rows] == [
        "ICT TO SAVINGS",
        "SALARY ACME PTE LTD",
        "POS NETS QR PAYMENT GRAB SINGAPORE",
    ]


def test_blank_amounts_parse_as_zero_credit():
    text = _dedent(
        """
        Account Details For:,POSB eSavings 111
        Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1,Transaction Ref2,Transaction Ref3
        01 Apr 2024,ADJ, , ,FEE WAIVER,,
        """
    )
    (t,) = parse_dbs_csv(text)
    assert t.absolute_amount == 0.0
    assert t.is_debit is False


def test_timestamps_are_reduced_to_singapore_date():
    text = _dedent(
        """
        Account Details For:,POSB eSavings 111
        Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1,Transaction Ref2,Transaction Ref3
        24 Mar 2024 20:00 UTC,POS,5.00,,LATE NIGHT,,
        """
    )
    (t,) = parse_dbs_csv(text)
    assert t.date == date(2024, 3, 25)


def test_build_description():
    assert build_description(["ITR", "", "REF2", ""]) == "REF2"
    assert build_description(["POS", "", "GRAB", "ITR"]) == "POS GRAB"
    assert build_description(["ITR", "", "", ""]) == "ITR"
    assert build_description(["", "", ""]) == ""
    assert build_description([]) == ""
    assert build_description(["A  B", "C"]) == "A B C"


def test_missing_signature_is_invalid_format():
    with pytest.raises(InvalidFormat):
        parse_dbs_csv("Date,Amount\n01 Apr 2024,1.00\n")


def test_missing_header_row_is_invalid_format():
    with pytest.raises(InvalidFormat):
        parse_dbs_csv("Account Details For:,POSB eSavings 111\nStatement as at:,05 Apr 2024\n")


def test_missing_account_name_is_invalid_format():
    text = _dedent(
        """
        Account Details For:,
        Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1
        01 Apr 2024,POS,1.00,,X
        """
    )
    with pytest.raises(InvalidFormat):
        parse_dbs_csv(text)


def test_missing_amount_column_is_invalid_format():
    text = _dedent(
        """
        Account Details For:,POSB eSavings 111
        Transaction Date,Reference,Debit Amount,Transaction Ref1
        01 Apr 2024,POS,1.00,X
        """
    )
    with pytest.raises(InvalidFormat, match="Credit Amount"):
        parse_dbs_csv(text)


def test_unparseable_date_raises_date_parse_error():
    text = _dedent(
        """
        Account Details For:,POSB eSavings 111
        Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1
        someday,POS,1.00,,X
        """
    )
    with pytest.raises(DateParseError) as excinfo:
        parse_dbs_csv(text)
    assert excinfo.value.value == "someday"
