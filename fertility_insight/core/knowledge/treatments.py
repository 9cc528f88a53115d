"""
Treatment Protocol Table

Default TreatmentProtocolRecord table, escalating level1 → level3.
"""
from .base import EvidenceLevel, TreatmentLevel, TreatmentProtocolRecord

TIMED_INTERCOURSE = "timed_intercourse"
OVULATION_INDUCTION = "ovulation_induction"
METFORMIN_LETROZOLE = "metformin_letrozole"
IUI = "iui"
IVF = "ivf"
MILD_IVF = "mild_ivf"
FET = "fet"
EGG_DONATION = "egg_donation"


TREATMENT_TABLE = (
    TreatmentProtocolRecord(
        id=TIMED_INTERCOURSE,
        name="Lifestyle optimisation + timed intercourse",
        level=TreatmentLevel.LEVEL1,
        complexity="low",
        success_rate_per_cycle="10-15% per cycle",
        cumulative_success="40-50% at 6 cycles",
        time_to_success="3-6 months",
        evidence_level=EvidenceLevel.B,
        guidelines=("NICE CG156",),
        indications=("unexplained infertility < 2 years", "age < 35"),
    ),
    TreatmentProtocolRecord(
        id=OVULATION_INDUCTION,
        name="Ovulation induction + IUI",
        level=TreatmentLevel.LEVEL1,
        complexity="low",
        success_rate_per_cycle="15-25% per cycle",
        cumulative_success="60-70% at 6 cycles",
        time_to_success="3-6 months",
        evidence_level=EvidenceLevel.A,
        guidelines=("ASRM Practice Committee 2020", "ESHRE Ovarian Stimulation 2019"),
        indications=("anovulation (WHO II)", "irregular ovulation", "unexplained infertility"),
        contraindications=("ovarian insufficiency (FSH > 20 IU/L)",),
    ),
    TreatmentProtocolRecord(
        id=METFORMIN_LETROZOLE,
        name="Metformin + lifestyle + letrozole",
        level=TreatmentLevel.LEVEL1,
        complexity="low",
        success_rate_per_cycle="20-30% per cycle",
        cumulative_success="60-75% at 6 cycles",
        time_to_success="3-6 months",
        evidence_level=EvidenceLevel.A,
        guidelines=("International PCOS Guideline 2023",),
        indications=("PCOS with anovulation", "insulin resistance"),
    ),
    TreatmentProtocolRecord(
        id=IUI,
        name="Intrauterine insemination",
        level=TreatmentLevel.LEVEL2,
        complexity="medium",
        success_rate_per_cycle="8-15% per cycle",
        cumulative_success="30-40% at 3-4 cycles",
        time_to_success="3-6 months",
        evidence_level=EvidenceLevel.A,
        guidelines=("ESHRE Unexplained Infertility Guideline 2023", "ASRM IUI Committee Opinion"),
        indications=("mild male factor", "unexplained infertility", "cervical factor"),
        contraindications=("bilateral tubal obstruction", "severe male factor"),
    ),
    TreatmentProtocolRecord(
        id=IVF,
        name="In-vitro fertilization",
        level=TreatmentLevel.LEVEL3,
        complexity="high",
        success_rate_per_cycle="20-45% per cycle (age dependent)",
        cumulative_success="50-70% at 3 cycles",
        time_to_success="1-3 cycles",
        evidence_level=EvidenceLevel.A,
        guidelines=("ESHRE Ovarian Stimulation Guideline 2019", "SART National Summary 2022"),
        indications=("tubal factor", "severe male factor", "failed IUI", "advanced age"),
    ),
    TreatmentProtocolRecord(
        id=MILD_IVF,
        name="IVF with mild stimulation protocol",
        level=TreatmentLevel.LEVEL3,
        complexity="high",
        success_rate_per_cycle="15-25% per cycle",
        cumulative_success="35-50% at 3 cycles",
        time_to_success="1-2 cycles",
        evidence_level=EvidenceLevel.B,
        guidelines=("POSEIDON criteria", "ESHRE Poor Responder Guideline"),
        indications=("diminished ovarian reserve", "poor responder"),
    ),
    TreatmentProtocolRecord(
        id=FET,
        name="Frozen embryo transfer",
        level=TreatmentLevel.LEVEL3,
        complexity="medium",
        success_rate_per_cycle="30-45% per transfer",
        cumulative_success="Depends on cryopreserved embryo count",
        time_to_success="1-2 months per transfer",
        evidence_level=EvidenceLevel.A,
        guidelines=("ESHRE Good Practice Recommendations for FET 2023",),
        indications=("surplus embryos", "OHSS risk", "endometrial asynchrony"),
    ),
    TreatmentProtocolRecord(
        id=EGG_DONATION,
        name="Egg donation",
        level=TreatmentLevel.LEVEL3,
        complexity="high",
        success_rate_per_cycle="50-60% per transfer",
        cumulative_success="80-90% at 3 transfers",
        time_to_success="3-6 months including donor matching",
        evidence_level=EvidenceLevel.A,
        guidelines=("ASRM Oocyte Donation Guidance 2021", "SART National Summary 2022"),
        indications=("age ≥ 43", "premature ovarian insufficiency", "very low AMH",
                     "repeated IVF failure with own oocytes"),
    ),
)
