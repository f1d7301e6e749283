"""
Question -> indicator tables for the school trackers.

Bump `version` whenever a question id moves; every dashboard, summary and
trend for a tracker reads its map from here.
"""

from msrc_reporting.reporting.indicators import CHOICES, FLAG, TEXT, Field, TrackerMap

REENTRY_MAP = TrackerMap(
    version="reentry-2024.1",
    fields=(
        # Girls pregnancy
        Field("pregnant_girls_attending", 1),
        Field("pregnant_girls_not_attending", 2),
        # Girls re-entry
        Field("dropped_out_returned", 3),
        Field("pregnant_returned_after_birth", 4),
        # Support services
        Field("support_activities", 5, TEXT),
        Field("followup_activities", 6, TEXT),
    ),
)

TVET_MAP = TrackerMap(
    version="tvet-2024.1",
    fields=(
        # Program availability
        Field("programs_offered", 1, CHOICES),
        Field("enrollment_capacity", 2),
        Field("current_enrollment", 3),
        # Infrastructure
        Field("workshops_available", 4, FLAG),
        Field("equipment_functional", 5, FLAG),
        Field("library_resources", 6, FLAG),
        # Staff
        Field("qualified_instructors", 7),
        Field("instructor_student_ratio", 8),
        # Performance
        Field("completion_rate", 9),
        Field("employment_rate", 10),
        Field("certification_rate", 11),
        # Industry partnerships
        Field("industry_partnerships", 12, FLAG),
        Field("internship_programs", 13, FLAG),
        Field("job_placement_support", 14, FLAG),
        # Quality assurance
        Field("curriculum_updated", 15, FLAG),
        Field("assessment_standards", 16, FLAG),
        Field("accreditation_status", 17, TEXT, default="Not Accredited"),
    ),
)

WASH_MAP = TrackerMap(
    version="wash-2024.1",
    fields=(
        Field("safe_drinking_water", 1, FLAG),
        Field("water_for_other_purposes", 2, FLAG),
        Field("separate_toilets", 3, FLAG),
        Field("adequate_toilets_boys", 4, FLAG),
        Field("urinal_available", 5, FLAG),
        Field("urinal_privacy_girls", 6, FLAG),
        Field("toilet_clean_accessible", 7, FLAG),
        Field("toilet_disability_friendly", 8, FLAG),
        Field("girls_changing_room", 9, FLAG),
        Field("soap_water_available", 10, FLAG),
        Field("refuse_disposal_site", 11, FLAG),
        Field("children_wash_hands", 12, FLAG),
        Field("hiv_aids_education", 13, FLAG),
        Field("sports_facilities", 14, FLAG),
        Field("health_hygiene_teaching", 15, FLAG),
        Field("first_aid_box", 16, FLAG),
        Field("dust_bins_in_use", 17, FLAG),
        Field("teachers_wash_hands", 18, FLAG),
        Field("compound_clean_safe", 19, FLAG),
        Field("vulnerable_children_support", 20, FLAG),
        # Facility availability
        Field("toilet_status", 21, TEXT),
        Field("urinal_status", 22, TEXT),
        Field("water_status", 23, TEXT),
        Field("veronica_bucket_status", 24, TEXT),
        Field("changing_rooms_status", 25, TEXT),
        Field("problems", 26, TEXT),
        Field("handwashing_facility", 33, FLAG),
        Field("playground_available", 36, FLAG),
    ),
)

# Numeric fields summed into the re-entry summary
REENTRY_TOTALS = {
    "total_pregnant_attending": "pregnant_girls_attending",
    "total_pregnant_not_attending": "pregnant_girls_not_attending",
    "total_dropped_out_returned": "dropped_out_returned",
    "total_pregnant_returned": "pregnant_returned_after_birth",
}

ACCREDITED = "Accredited"
