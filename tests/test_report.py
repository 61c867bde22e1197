import pytest

import report
from errors import InvalidParameter
from report import GroupBy, Metric, ReportField


def by_id(rows):
    return {row["_id"]: row for row in rows}


def test_parse_defaults():
    assert report.parse_group_by(None) is GroupBy.VENDOR
    assert report.parse_metric(None) is Metric.AVG
    assert report.parse_field(None) is ReportField.SCORE


def test_parse_known_values():
    assert report.parse_group_by("categories") is GroupBy.CATEGORY
    assert report.parse_metric("count") is Metric.COUNT
    assert report.parse_field("ratings.flavor") is ReportField.FLAVOR


def test_parse_rejects_unknown_value():
    with pytest.raises(InvalidParameter) as excinfo:
        report.parse_field("$where")
    assert excinfo.value.value == "$where"
    assert excinfo.value.accepted == ["score", "price", "ratings.strength", "ratings.flavor"]
    assert "$where" in excinfo.value.message
    assert "ratings.strength" in excinfo.value.message


def test_parse_rejects_unknown_group():
    with pytest.raises(InvalidParameter) as excinfo:
        report.parse_group_by("name")
    assert excinfo.value.status_code == 400
    assert excinfo.value.accepted == ["vendor_id", "categories"]


def test_output_name_replaces_dots():
    assert report.output_name(Metric.AVG, ReportField.STRENGTH) == "ratings_strength_avg"
    assert report.output_name(Metric.SUM, ReportField.PRICE) == "price_sum"


def test_pipeline_by_vendor():
    assert report.build_pipeline(GroupBy.VENDOR, Metric.SUM, ReportField.PRICE) == [
        {"$project": {"_id": False, "vendor_id": True, "price": True}},
        {"$group": {"_id": "$vendor_id", "price_sum": {"$sum": "$price"}}},
    ]


def test_pipeline_by_category_unwinds_first():
    pipeline = report.build_pipeline(GroupBy.CATEGORY, Metric.AVG, ReportField.FLAVOR)
    assert pipeline[0] == {"$unwind": "$categories"}
    assert pipeline[2] == {
        "$group": {"_id": "$categories", "ratings_flavor_avg": {"$avg": "$ratings.flavor"}}
    }


def test_pipeline_count_ignores_field():
    pipeline = report.build_pipeline(GroupBy.VENDOR, Metric.COUNT, ReportField.FLAVOR)
    assert pipeline == [
        {"$project": {"_id": False, "vendor_id": True}},
        {"$group": {"_id": "$vendor_id", "ratings_flavor_count": {"$sum": 1}}},
    ]


def test_report_count_by_vendor(db, potions):
    rows = report.build_report(db["potion"], GroupBy.VENDOR, Metric.COUNT, ReportField.SCORE)
    assert by_id(rows) == {
        "kettle": {"_id": "kettle", "score_count": 2},
        "cauldron": {"_id": "cauldron", "score_count": 2},
    }
    assert sum(row["score_count"] for row in rows) == len(potions)


def test_report_sum_price_by_category(db, potions):
    rows = by_id(report.build_report(db["potion"], GroupBy.CATEGORY, Metric.SUM, ReportField.PRICE))
    assert rows["effective"]["price_sum"] == pytest.approx(35.5)
    assert rows["premium"]["price_sum"] == pytest.approx(65.5)
    assert rows["spicy"]["price_sum"] == pytest.approx(45)


def test_report_nested_field(db):
    db["potion"].insert_many([
        {"name": "a", "vendor_id": "v1", "ratings": {"strength": 2, "flavor": 3}},
        {"name": "b", "vendor_id": "v1", "ratings": {"strength": 4, "flavor": 5}},
    ])
    rows = report.build_report(db["potion"], GroupBy.VENDOR, Metric.AVG, ReportField.STRENGTH)
    assert rows == [{"_id": "v1", "ratings_strength_avg": 3}]


def test_report_empty_collection(db):
    assert report.build_report(db["potion"], GroupBy.CATEGORY, Metric.AVG, ReportField.SCORE) == []


def test_distinct_category_count(db, potions):
    assert report.distinct_category_count(db["potion"]) == {"distinctCategoryCount": 3}


def test_distinct_category_count_empty(db):
    assert report.distinct_category_count(db["potion"]) == {"distinctCategoryCount": 0}


def test_average_score_by_vendor(db, potions):
    rows = by_id(report.average_score_by_vendor(db["potion"]))
    assert rows["kettle"]["average"] == pytest.approx(60)
    assert rows["cauldron"]["average"] == pytest.approx(50)


def test_average_score_by_category(db, potions):
    rows = by_id(report.average_score_by_category(db["potion"]))
    assert rows["effective"]["average"] == pytest.approx(60)
    assert rows["premium"]["average"] == pytest.approx(70)
    assert rows["spicy"]["average"] == pytest.approx(50)


def test_strength_flavor_ratio_skips_zero_and_missing_flavor(db, potions):
    rows = {row["name"]: row["ratio"] for row in report.strength_flavor_ratio(db["potion"])}
    assert rows == {"Invisibility": pytest.approx(0.4), "Healing": 2.0}
