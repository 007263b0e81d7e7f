"""HIV metadata codes used to render report query bodies.

The codes identify encounter types, concepts, programs and workflow states in
the clinical database. They are injected into query bodies by the
QueryCatalog; the evaluator never sees them.
"""

from dataclasses import asdict, dataclass, fields, replace

from eri.core.exceptions import ERIError


@dataclass(frozen=True)
class HivMetadata:
    """Encounter type, concept, program and state ids for HIV care.

    Defaults match a standard EPTS/OpenMRS dictionary; sites with different
    ids override them through the config file's "metadata" object.
    """

    # Encounter types
    arv_pharmacia_encounter_type: int = 18
    adulto_seguimento_encounter_type: int = 6
    arv_pediatria_seguimento_encounter_type: int = 9

    # Concepts
    arv_plan_concept: int = 1255
    start_drugs_concept: int = 1256
    historical_drug_start_date_concept: int = 1190
    pregnant_concept: int = 1982
    breastfeeding_concept: int = 6332
    yes_concept: int = 1065
    number_of_weeks_pregnant_concept: int = 1279

    # Programs and workflow states
    art_program: int = 2
    ptv_eta_program: int = 8
    transferred_from_other_facility_state: int = 29
    patient_gave_birth_state: int = 27

    def with_overrides(self, **overrides: int) -> "HivMetadata":
        """Return a copy with some codes replaced.

        Raises:
            ERIError: If an override names an unknown code
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ERIError(f"Unknown metadata codes: {', '.join(unknown)}")
        return replace(self, **overrides)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)
