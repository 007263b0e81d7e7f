"""Tests for eri.core.parameters.

Tests cover:
- ParameterType checks without coercion
- ParameterBinding validation, get(), resolve(), with_values(), restrict()
- Hashing and equality
- parse_mappings() grammar
"""

from datetime import date, datetime

import pytest

from eri.core.exceptions import (
    MappingSyntaxError,
    MissingParameterError,
    TypeMismatchError,
    UnknownLocationError,
)
from eri.core.parameters import (
    Location,
    ParameterBinding,
    ParameterType,
    is_date_parameter,
    parse_mappings,
)

NAMACURRA = Location(103, "CS Namacurra")


@pytest.fixture
def binding():
    return ParameterBinding.for_period(date(2019, 1, 21), date(2019, 2, 20), NAMACURRA)


class TestParameterType:
    def test_date_accepts_dates(self):
        assert ParameterType.DATE.accepts(date(2019, 1, 1))
        assert ParameterType.DATE.accepts(datetime(2019, 1, 1, 10, 30))

    def test_date_rejects_strings(self):
        """ISO strings are not coerced to dates."""
        assert not ParameterType.DATE.accepts("2019-01-01")

    def test_location_accepts_only_locations(self):
        assert ParameterType.LOCATION.accepts(NAMACURRA)
        assert not ParameterType.LOCATION.accepts(103)

    def test_integer_rejects_bool(self):
        assert ParameterType.INTEGER.accepts(15)
        assert not ParameterType.INTEGER.accepts(True)
        assert not ParameterType.INTEGER.accepts("15")


class TestLocation:
    def test_equality_ignores_name(self):
        assert Location(103, "CS Namacurra") == Location(103)
        assert hash(Location(103, "CS Namacurra")) == hash(Location(103))

    def test_str_prefers_name(self):
        assert str(NAMACURRA) == "CS Namacurra"
        assert str(Location(7)) == "7"


class TestBindingValidation:
    def test_date_parameter_names(self):
        assert is_date_parameter("startDate")
        assert is_date_parameter("onOrAfter")
        assert not is_date_parameter("location")
        assert not is_date_parameter("minAge")

    def test_string_date_rejected(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            ParameterBinding({"startDate": "2019-01-21"})
        assert exc_info.value.parameter == "startDate"
        assert exc_info.value.expected == "date"

    def test_integer_location_rejected(self):
        with pytest.raises(TypeMismatchError, match="expects Location"):
            ParameterBinding({"location": 103})

    def test_known_locations_enforced(self):
        with pytest.raises(UnknownLocationError) as exc_info:
            ParameterBinding({"location": Location(999)}, known_locations={103})
        assert exc_info.value.location_id == 999

    def test_known_locations_accepts_member(self):
        b = ParameterBinding({"location": NAMACURRA}, known_locations={103, 104})
        assert b.get("location") == NAMACURRA


class TestBindingAccess:
    def test_get_present(self, binding):
        assert binding.get("startDate") == date(2019, 1, 21)

    def test_get_missing_raises(self, binding):
        with pytest.raises(MissingParameterError) as exc_info:
            binding.get("onOrAfter")
        assert exc_info.value.parameter == "onOrAfter"

    def test_mapping_protocol(self, binding):
        assert len(binding) == 3
        assert "location" in binding
        assert set(binding) == {"startDate", "endDate", "location"}
        assert binding.as_dict()["endDate"] == date(2019, 2, 20)

    def test_equal_bindings_hash_equal(self, binding):
        other = ParameterBinding(
            {"location": NAMACURRA, "endDate": date(2019, 2, 20), "startDate": date(2019, 1, 21)}
        )
        assert binding == other
        assert hash(binding) == hash(other)
        assert len({binding, other}) == 1


class TestResolve:
    def test_rename_replaces_source_keys(self, binding):
        child = binding.resolve({"startDate": "onOrAfter", "endDate": "onOrBefore"})

        assert child.get("onOrAfter") == date(2019, 1, 21)
        assert child.get("onOrBefore") == date(2019, 2, 20)
        assert "startDate" not in child
        assert "endDate" not in child

    def test_unspecified_keys_pass_through(self, binding):
        child = binding.resolve({"startDate": "onOrAfter"})
        assert child.get("location") == NAMACURRA
        assert child.get("endDate") == date(2019, 2, 20)

    def test_identity_rename(self, binding):
        assert binding.resolve({"startDate": "startDate"}) == binding

    def test_missing_source_raises(self, binding):
        with pytest.raises(MissingParameterError):
            binding.resolve({"reportingDate": "onOrBefore"})

    def test_original_unchanged(self, binding):
        binding.resolve({"startDate": "onOrAfter"})
        assert "startDate" in binding
        assert "onOrAfter" not in binding

    def test_known_locations_carried_over(self):
        b = ParameterBinding({"location": NAMACURRA}, known_locations={103})
        with pytest.raises(UnknownLocationError):
            b.with_values({"location": Location(5)})


class TestWithValuesAndRestrict:
    def test_with_values_adds(self, binding):
        b = binding.with_values({"minAge": 0, "maxAge": 14})
        assert b.get("minAge") == 0
        assert b.get("maxAge") == 14
        assert "minAge" not in binding

    def test_with_values_validates(self, binding):
        with pytest.raises(TypeMismatchError):
            binding.with_values({"endDate": 20190220})

    def test_restrict(self, binding):
        b = binding.restrict(["endDate", "location", "unused"])
        assert set(b) == {"endDate", "location"}


class TestParseMappings:
    def test_report_mapping(self):
        parsed = parse_mappings(
            "startDate=${startDate},endDate=${endDate},location=${location}"
        )
        assert parsed.rename_map == {
            "startDate": "startDate",
            "endDate": "endDate",
            "location": "location",
        }
        assert parsed.fixed == {}

    def test_rename_mapping(self):
        parsed = parse_mappings("onOrAfter=${startDate}, onOrBefore=${endDate}")
        assert parsed.rename_map == {"startDate": "onOrAfter", "endDate": "onOrBefore"}

    def test_literal_values(self):
        parsed = parse_mappings("minAge=15,maxAge=200,onOrBefore=2019-02-20,label=x")
        assert parsed.fixed == {
            "minAge": 15,
            "maxAge": 200,
            "onOrBefore": date(2019, 2, 20),
            "label": "x",
        }

    def test_empty_string(self):
        parsed = parse_mappings("  ")
        assert parsed.rename_map == {}
        assert parsed.fixed == {}

    @pytest.mark.parametrize(
        "text",
        [
            "startDate",
            "=${startDate}",
            "onOrAfter=${startDate",
            "startDate=${startDate},,endDate=${endDate}",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(MappingSyntaxError):
            parse_mappings(text)

    def test_duplicate_target(self):
        with pytest.raises(MappingSyntaxError, match="mapped twice"):
            parse_mappings("onOrAfter=${startDate},onOrAfter=${endDate}")

    def test_duplicate_source(self):
        with pytest.raises(MappingSyntaxError, match="more than one target"):
            parse_mappings("onOrBefore=${endDate},endDate=${endDate}")
