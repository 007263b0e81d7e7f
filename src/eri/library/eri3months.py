"""Cohort definitions for the early retention indicator (3 months on ART).

Every definition takes the standard report parameters (startDate, endDate,
location). Population segments are compositions over the "all" retained
cohort; NOT is complemented against that cohort.
"""

from eri.core.definitions import (
    CompositionCohortDefinition,
    SqlCohortDefinition,
    map_search,
)
from eri.core.parameters import (
    END_DATE,
    LOCATION,
    Parameter,
    ParameterType,
)
from eri.library.queries import QueryCatalog

# Maps the report parameters unchanged onto a child search
REPORT_MAPPINGS = "startDate=${startDate},endDate=${endDate},location=${location}"

CHILDREN_AGE_RANGE = (0, 14)
ADULTS_AGE_RANGE = (15, 200)

ON_OR_AFTER = Parameter("onOrAfter", "On Or After", ParameterType.DATE)
ON_OR_BEFORE = Parameter("onOrBefore", "On Or Before", ParameterType.DATE)
MIN_AGE = Parameter("minAge", "Minimum Age", ParameterType.INTEGER)
MAX_AGE = Parameter("maxAge", "Maximum Age", ParameterType.INTEGER)


class Eri3MonthsCohortQueries:
    """Builds the ERI 3-month cohort definitions.

    Args:
        catalog: Source of rendered query bodies
    """

    def __init__(self, catalog: QueryCatalog | None = None):
        self.catalog = catalog or QueryCatalog()

    # ------------------------------------------------------------------
    # Query-backed cohorts
    # ------------------------------------------------------------------

    def retained_on_art(self) -> SqlCohortDefinition:
        """All patients retained on ART 3 months after initiation."""
        return SqlCohortDefinition(
            name="patientsRetentionFor3MonthsOnART",
            query=self.catalog.render("retained_on_art_3_months"),
            description="Patients retained on ART 3 months after ART initiation",
        )

    def pregnant_enrolled_on_art(self) -> SqlCohortDefinition:
        return SqlCohortDefinition(
            name="pregnantEnrolledOnART",
            query=self.catalog.render("pregnant_enrolled_on_art"),
            description="Women pregnant during the period and enrolled on ART",
        )

    def breastfeeding(self) -> SqlCohortDefinition:
        return SqlCohortDefinition(
            name="breastfeeding",
            query=self.catalog.render("breastfeeding"),
            parameters=(ON_OR_AFTER, ON_OR_BEFORE, LOCATION),
            description="Women breastfeeding during the period",
        )

    def age_bracket(self) -> SqlCohortDefinition:
        """Patients whose age on endDate lies within [minAge, maxAge]."""
        return SqlCohortDefinition(
            name="patientsBetweenAgeBrackets",
            query=self.catalog.render("age_bracket"),
            parameters=(END_DATE, LOCATION, MIN_AGE, MAX_AGE),
        )

    # ------------------------------------------------------------------
    # Compositions
    # ------------------------------------------------------------------

    def pregnant_retained_on_art(self) -> CompositionCohortDefinition:
        return CompositionCohortDefinition(
            name="Pregnant women retained on ART for 3 months from ART initiation",
            searches={
                "all": map_search(self.retained_on_art(), REPORT_MAPPINGS),
                "pregnant": map_search(self.pregnant_enrolled_on_art(), REPORT_MAPPINGS),
            },
            expression="all AND pregnant",
        )

    def breastfeeding_retained_on_art(self) -> CompositionCohortDefinition:
        return CompositionCohortDefinition(
            name="Breastfeeding women retained on ART for 3 months from ART initiation",
            searches={
                "all": map_search(self.retained_on_art(), REPORT_MAPPINGS),
                "breastfeeding": map_search(
                    self.breastfeeding(),
                    "onOrAfter=${startDate},onOrBefore=${endDate},location=${location}",
                ),
            },
            expression="all AND breastfeeding",
        )

    def _age_segment(
        self, name: str, segment: str, age_range: tuple[int, int]
    ) -> CompositionCohortDefinition:
        min_age, max_age = age_range
        return CompositionCohortDefinition(
            name=name,
            searches={
                "all": map_search(self.retained_on_art(), REPORT_MAPPINGS),
                segment: map_search(
                    self.age_bracket(),
                    f"endDate=${{endDate}},location=${{location}},"
                    f"minAge={min_age},maxAge={max_age}",
                ),
                "pregnant": map_search(self.pregnant_retained_on_art(), REPORT_MAPPINGS),
                "breastfeeding": map_search(
                    self.breastfeeding_retained_on_art(), REPORT_MAPPINGS
                ),
            },
            expression=f"all AND {segment} AND NOT(pregnant OR breastfeeding)",
            description=(
                f"Aged {min_age}-{max_age}, excluding pregnant and breastfeeding women"
            ),
        )

    def children_retained_on_art(self) -> CompositionCohortDefinition:
        """Children (0-14) excluding pregnant and breastfeeding women."""
        return self._age_segment(
            "Children retained on ART for 3 months", "children", CHILDREN_AGE_RANGE
        )

    def adults_retained_on_art(self) -> CompositionCohortDefinition:
        """Adults (15+) excluding pregnant and breastfeeding women."""
        return self._age_segment(
            "Adults retained on ART for 3 months", "adults", ADULTS_AGE_RANGE
        )
