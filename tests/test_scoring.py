import pytest
from appraisal_api.services.scoring import (
    ScoringError, WeightedItem, committee_final_score, noteworthy_bonus, performance_band,
    section_cap, section_score, weighted_average,
)

@pytest.mark.parametrize("ratings, expected", [
    ([4, 5, 3], 80),
    ([3], 60),
    ([5, 5, 5], 100),
    ([1], 20),
    ([1, 2, 2], 33),          # 33.33
    ([5, 5, 4], 93),          # 93.33
    ([1] * 7 + [2], 23),      # 22.5 rounds half-up
    ([3, None, 5], 80),       # unanswered entries are skipped
])
def test_committee_final_score(ratings, expected):
    assert committee_final_score(ratings) == expected

def test_committee_final_score_without_ratings():
    with pytest.raises(ScoringError):
        committee_final_score([])
    with pytest.raises(ScoringError):
        committee_final_score([None, None])

@pytest.mark.parametrize("bad", [0, 6, True, 3.5, "4"])
def test_committee_final_score_rejects_invalid_ratings(bad):
    with pytest.raises(ScoringError):
        committee_final_score([4, bad])

@pytest.mark.parametrize("score, band", [
    (100, "Exceptional"),
    (91, "Exceptional"),
    (90, "Excellent"),
    (81, "Excellent"),
    (80, "Very Good"),
    (71, "Very Good"),
    (70, "Good"),
    (61, "Good"),
    (60, "Fair"),
    (51, "Fair"),
    (50, "Poor"),
    (0, "Poor"),
    (90.99, "Excellent"),
])
def test_performance_band_lower_bounds_inclusive(score, band):
    assert performance_band(score) == band

def test_section_caps_by_keyword():
    assert section_cap("Financial Performance") == 50
    assert section_cap("Sales Targets") == 50
    assert section_cap("Operational Excellence") == 35
    assert section_cap("Process Efficiency") == 35
    assert section_cap("Behavioral Traits") == 15
    assert section_cap("Soft Skills") == 15
    assert section_cap("Customer Focus") is None

def test_section_score_percentage_and_cap():
    items = [WeightedItem(5), WeightedItem(5)]
    assert section_score("Customer Focus", items) == 100.0
    assert section_score("Financial Performance", items) == 50.0
    assert section_score("Operational", [WeightedItem(4, 2), WeightedItem(2, 1)]) == 35.0

def test_section_score_treats_missing_as_zero():
    assert section_score("Customer Focus", [WeightedItem(None), WeightedItem(5)]) == 50.0

def test_section_score_respects_question_weight():
    # (4*3 + 2*1) / (5*3 + 5*1) = 14 / 20
    assert section_score("Customer Focus", [WeightedItem(4, 3), WeightedItem(2, 1)]) == pytest.approx(70.0)

def test_weighted_average():
    sections = [{"score": 80, "weight": 2}, {"score": 50, "weight": 1}]
    assert weighted_average(sections) == pytest.approx(70.0)
    assert weighted_average([{"score": 80, "weight": 0}]) == 0.0

def test_noteworthy_bonus_marks_and_caps():
    sections = [
        {"section_name": "Financial Performance", "score": 50, "is_noteworthy": False},
        {"section_name": "Customer Focus", "score": 90, "is_noteworthy": False},
        {"section_name": "Teamwork", "score": 80, "is_noteworthy": False},
    ]
    bonus = noteworthy_bonus(sections, "financial, customer")
    # 5 + 9 = 14, capped at 10 overall
    assert bonus == 10.0
    assert [s["is_noteworthy"] for s in sections] == [True, True, False]

def test_noteworthy_bonus_empty():
    assert noteworthy_bonus([{"section_name": "Financial", "score": 50}], None) == 0.0
    assert noteworthy_bonus([{"section_name": "Financial", "score": 50}], " , ") == 0.0
