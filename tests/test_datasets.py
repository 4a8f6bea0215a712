"""Tests for cpb_ai.datasets: dataset routing and report conversion."""

from __future__ import annotations

import pytest

from cpb_ai.datasets.reports import CLINICAL_BASELINE, parse_duration, records_from_reports
from cpb_ai.datasets.router import DatasetRouter
from cpb_ai.exceptions import DatasetFormatError
from cpb_ai.types import Domain

# ======================================================================
# DatasetRouter.locate_records
# ======================================================================


class TestLocateRecords:
    def test_bare_list(self) -> None:
        assert DatasetRouter.locate_records([{"ph": 7.4}]) == [{"ph": 7.4}]

    @pytest.mark.parametrize("key", ["data", "records", "items"])
    def test_wrapper_keys(self, key: str) -> None:
        assert DatasetRouter.locate_records({key: [{"ph": 7.4}]}) == [{"ph": 7.4}]

    def test_first_list_property(self) -> None:
        payload = {"name": "export", "patients": [{"poids": 70}]}
        assert DatasetRouter.locate_records(payload) == [{"poids": 70}]

    def test_non_dict_items_dropped(self) -> None:
        assert DatasetRouter.locate_records([1, {"ph": 7.4}, "x"]) == [{"ph": 7.4}]

    def test_no_list_lists_keys(self) -> None:
        with pytest.raises(DatasetFormatError) as exc_info:
            DatasetRouter.locate_records({"foo": 1, "bar": "x"})
        assert exc_info.value.keys == ["bar", "foo"]

    def test_scalar_payload(self) -> None:
        with pytest.raises(DatasetFormatError):
            DatasetRouter.locate_records(42)

    def test_list_without_records(self) -> None:
        with pytest.raises(DatasetFormatError):
            DatasetRouter.locate_records({"data": [1, 2, 3]})


# ======================================================================
# DatasetRouter.route
# ======================================================================


class TestRoute:
    def test_blood_gas(self) -> None:
        routed = DatasetRouter().route([{"ph": 7.3, "pco2": 48, "lactate": 2.1}])
        assert routed.domain == Domain.BLOOD_GAS
        assert routed.matched_markers == ["lactate", "pco2", "ph"]

    def test_transfusion(self) -> None:
        routed = DatasetRouter().route({"data": [{"poids": 70, "age": 60, "sexe": "M"}]})
        assert routed.domain == Domain.TRANSFUSION
        assert len(routed) == 1

    def test_nested_features_are_inspected(self) -> None:
        routed = DatasetRouter().route(CLINICAL_BASELINE)
        assert routed.domain == Domain.TRANSFUSION

    def test_perfusion(self) -> None:
        routed = DatasetRouter().route([{"bsa": 1.9, "target_ci": 2.4, "target_flow": 4.5}])
        assert routed.domain == Domain.PERFUSION

    def test_fluid_balance(self) -> None:
        routed = DatasetRouter().route([{"balance": 800, "duree_cec": 90, "action": 1}])
        assert routed.domain == Domain.FLUID_BALANCE

    def test_unknown_markers(self) -> None:
        with pytest.raises(DatasetFormatError) as exc_info:
            DatasetRouter().route([{"foo": 1, "bar": 2}])
        assert exc_info.value.keys == ["foo", "bar"]
        assert "foo" in str(exc_info.value)


# ======================================================================
# Reports
# ======================================================================


class TestReports:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(95, 95.0), ("120", 120.0), ("1:30", 90.0), ("02:05", 125.0), (None, 0.0), ("?", 0.0)],
    )
    def test_parse_duration(self, value: object, expected: float) -> None:
        assert parse_duration(value) == expected

    def test_records_from_reports(self) -> None:
        reports = [
            {
                "poids": 72,
                "taille": 170,
                "age": 66,
                "hb": 9.1,
                "hte": 27,
                "duree_cec": "1:45",
                "autres_drogues": [{"nom": "CGR x2"}],
                "observations": "Complication hémorragique",
            },
            {"poids": 80, "taille": 180, "age": 50, "hb": 13, "hte": 40, "autres_drogues": []},
            {"poids": 0, "taille": 180, "age": 50, "hb": 13, "hte": 40},
            {"taille": 180, "age": 50},
        ]
        records = records_from_reports(reports)
        assert len(records) == 2
        first = records[0]
        assert first["features"]["duree_cec"] == 105.0
        assert first["labels"] == {"transfusion": 1, "complications": 1}
        assert records[1]["labels"] == {"transfusion": 0, "complications": 0}
