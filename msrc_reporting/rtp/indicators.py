"""
Right to Play question -> indicator tables.

Every endpoint reading RTP answers (analytics, trends, gender analysis,
historical trend) takes its question ids from here.
"""

from msrc_reporting.reporting.indicators import Split, Sum, SumMap

SCHOOL_OUTPUT_MAP = SumMap(
    version="rtp-school-2024.1",
    indicators=(
        Split("teacherChampions", male=(1,), female=(2,)),
        Sum("insetTrainings", (3,)),
        Split("teachersPBL", male=(4,), female=(5,)),
        Split("teachersECE", male=(6,), female=(7,)),
        Split("teachersOther", male=(8,), female=(9,)),
        Split("teachersNoTraining", male=(10,), female=(11,)),
        Split("studentsEnrolled", male=(12,), female=(13,)),
        Split("studentsSpecialNeeds", male=(14,), female=(15,)),
        Sum("mentoringVisits", (16,)),
        Split("teacherTransfers", male=(17,), female=(18,)),
    ),
)

# Indicators broken down per district in gender-disaggregated view
BY_DISTRICT_INDICATORS = ("teacherChampions", "teachersPBL", "studentsEnrolled", "studentsSpecialNeeds")

# Indicators whose teachers count as trained
TRAINED_INDICATORS = ("teachersPBL", "teachersECE", "teachersOther")

TEACHERS_TRAINED_MAP = SumMap(
    version=SCHOOL_OUTPUT_MAP.version,
    indicators=(
        Split(
            "totalTeachersTrained",
            male=sum((SCHOOL_OUTPUT_MAP.get(name).male for name in TRAINED_INDICATORS), ()),
            female=sum((SCHOOL_OUTPUT_MAP.get(name).female for name in TRAINED_INDICATORS), ()),
        ),
    ),
)

DISTRICT_OUTPUT_MAP = SumMap(
    version="rtp-district-2024.1",
    indicators=(
        Sum("districtTeamSupportPlans", (101,)),
        Sum("trainingProvided", (102,)),
        Split("districtTeamMembersTrained", male=(106,), female=(107,)),
        Sum("districtTeamMembersReported", (103,)),  # total as typed on the form
        Sum("districtsMentoringPlans", (104,)),
        Sum("districtTeamsFormed", (105,)),
        Sum("financialSupportDistricts", (108,)),
        Sum("planningMeetings", (109,)),
        Split("planningAttendees", male=(110,), female=(111,)),
        Sum("schoolsVisited", (112,)),
        Split("trainersFromDST", male=(113,), female=(114,)),
        Sum("nationalMeetings", (115,)),
        Split("nationalAttendees", male=(116,), female=(117,)),
    ),
)

# Consolidated checklist questions
IMPLEMENTATION_PLAN_QUESTION = 301  # answered yes/no
DEVELOPMENT_PLAN_QUESTION = 302     # counts when a plan file is uploaded
LESSON_PLAN_QUESTION = 303          # per teacher, yes/no

# Partners in Play scoring
PIP_MAX_SCORE = 5
LTP_SCORE_THRESHOLD = 3.5
LEARNING_ENVIRONMENT_WEIGHTS = {
    "friendly_tone_score": 0.3,
    "acknowledging_effort_score": 0.3,
    "pupil_participation_score": 0.4,
}
