from datetime import date

from utils.ic import ICDemographics, birth_date_from_ic, gender_from_ic, infer_from_ic

TODAY = date(2024, 6, 1)


def test_birth_date_uses_last_century_when_needed():
    assert birth_date_from_ic("900101145679", TODAY) == date(1990, 1, 1)
    assert birth_date_from_ic("050315101234", TODAY) == date(2005, 3, 15)


def test_birth_date_accepts_formatted_ic():
    assert birth_date_from_ic("900101-14-5679", TODAY) == date(1990, 1, 1)


def test_birth_date_rejects_bad_input():
    assert birth_date_from_ic("12345", TODAY) is None
    assert birth_date_from_ic("901301145679", TODAY) is None
    assert birth_date_from_ic(None, TODAY) is None


def test_gender_from_final_digit_parity():
    assert gender_from_ic("900101145679") == "M"
    assert gender_from_ic("900101145678") == "F"
    assert gender_from_ic("9001") is None


def test_infer_from_ic_gender_is_opt_in():
    without = infer_from_ic("900101145679", TODAY)
    assert without == ICDemographics(date_of_birth=date(1990, 1, 1), age=34, gender=None)

    with_gender = infer_from_ic("900101145679", TODAY, include_gender=True)
    assert with_gender.gender == "M"


def test_infer_from_short_ic_is_empty():
    assert infer_from_ic("12345", TODAY) == ICDemographics()
