"""
Aggregation pipelines over the potion collection.

Every pipeline is assembled from closed enums. Caller strings are matched
against the enum values first and never reach a field-path position.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pymongo.collection import Collection

from errors import InvalidParameter


class GroupBy(str, Enum):
    VENDOR = "vendor_id"
    CATEGORY = "categories"

    @property
    def needs_unwind(self) -> bool:
        return self is GroupBy.CATEGORY


class Metric(str, Enum):
    AVG = "avg"
    SUM = "sum"
    COUNT = "count"


class ReportField(str, Enum):
    SCORE = "score"
    PRICE = "price"
    STRENGTH = "ratings.strength"
    FLAVOR = "ratings.flavor"


E = TypeVar("E", bound=Enum)


def _parse(enum_cls: Type[E], param: str, value: Optional[str], default: E) -> E:
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidParameter(param, value, [m.value for m in enum_cls])


def parse_group_by(value: Optional[str]) -> GroupBy:
    return _parse(GroupBy, "groupType", value, GroupBy.VENDOR)


def parse_metric(value: Optional[str]) -> Metric:
    return _parse(Metric, "metric", value, Metric.AVG)


def parse_field(value: Optional[str]) -> ReportField:
    return _parse(ReportField, "field", value, ReportField.SCORE)


def output_name(metric: Metric, field: ReportField) -> str:
    """Name of the computed attribute, e.g. ratings_strength_avg."""
    return f"{field.value.replace('.', '_')}_{metric.value}"


def _accumulator(metric: Metric, field: ReportField) -> Dict[str, Any]:
    if metric is Metric.COUNT:
        return {"$sum": 1}
    return {f"${metric.value}": f"${field.value}"}


def _unwind(group_by: GroupBy) -> List[Dict[str, Any]]:
    return [{"$unwind": f"${group_by.value}"}] if group_by.needs_unwind else []


def build_pipeline(group_by: GroupBy, metric: Metric, field: ReportField) -> List[Dict[str, Any]]:
    project: Dict[str, Any] = {"_id": False, group_by.value: True}
    if metric is not Metric.COUNT:
        project[field.value] = True
    pipeline = _unwind(group_by)
    pipeline.append({"$project": project})
    pipeline.append({
        "$group": {
            "_id": f"${group_by.value}",
            output_name(metric, field): _accumulator(metric, field),
        }
    })
    return pipeline


def build_report(collection: Collection, group_by: GroupBy, metric: Metric,
                 field: ReportField) -> List[Dict[str, Any]]:
    return list(collection.aggregate(build_pipeline(group_by, metric, field)))


# Fixed reports

def distinct_categories_pipeline() -> List[Dict[str, Any]]:
    return _unwind(GroupBy.CATEGORY) + [
        {"$group": {"_id": "$categories"}},
        {"$count": "distinctCategoryCount"},
    ]


def distinct_category_count(collection: Collection) -> Dict[str, int]:
    rows = list(collection.aggregate(distinct_categories_pipeline()))
    return rows[0] if rows else {"distinctCategoryCount": 0}


def average_score_pipeline(group_by: GroupBy) -> List[Dict[str, Any]]:
    pipeline = _unwind(group_by)
    if not group_by.needs_unwind:
        pipeline.append({"$project": {"_id": False, "score": True, group_by.value: True}})
    pipeline.append({"$group": {"_id": f"${group_by.value}", "average": {"$avg": "$score"}}})
    return pipeline


def average_score_by_vendor(collection: Collection) -> List[Dict[str, Any]]:
    return list(collection.aggregate(average_score_pipeline(GroupBy.VENDOR)))


def average_score_by_category(collection: Collection) -> List[Dict[str, Any]]:
    return list(collection.aggregate(average_score_pipeline(GroupBy.CATEGORY)))


def strength_flavor_ratio_pipeline() -> List[Dict[str, Any]]:
    # flavor must exist and be positive, otherwise $divide yields inf or fails
    return [
        {"$match": {"ratings.flavor": {"$exists": True, "$gt": 0}}},
        {
            "$project": {
                "_id": False,
                "name": True,
                "ratio": {"$divide": ["$ratings.strength", "$ratings.flavor"]},
            }
        },
    ]


def strength_flavor_ratio(collection: Collection) -> List[Dict[str, Any]]:
    return list(collection.aggregate(strength_flavor_ratio_pipeline()))
