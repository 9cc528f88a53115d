"""
Reproductive Pathology Table

Default PathologyRecord table. Prevalence ranges are fractions of the
infertile population. Order matters for tie-breaking in the scorer.

References are DOI / PMID / guideline strings carried through for display.
"""
from .base import EvidenceLevel, PathologyCategory, PathologyRecord

# Stable ids referenced by scorer rules and the treatment generator
PCOS = "pcos"
ENDOMETRIOSIS = "endometriosis"
MALE_FACTOR = "male_factor"
DIMINISHED_OVARIAN_RESERVE = "diminished_ovarian_reserve"
OVULATION_DISORDERS = "ovulation_disorders"
TUBAL_FACTOR = "tubal_factor"
HYPERPROLACTINEMIA = "hyperprolactinemia"
HYPOTHYROIDISM = "hypothyroidism"
UNEXPLAINED = "unexplained"


PATHOLOGY_TABLE = (
    PathologyRecord(
        id=PCOS,
        name="Polycystic Ovary Syndrome",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.05, 0.10),
        evidence_level=EvidenceLevel.A,
        definition=(
            "Endocrine disorder with hyperandrogenism, ovulatory dysfunction "
            "and polycystic ovarian morphology (Rotterdam, 2 of 3)."
        ),
        symptoms=("oligomenorrhea", "amenorrhea", "hirsutism", "acne",
                  "androgenic_alopecia", "central_obesity", "acanthosis_nigricans"),
        risk_factors=("insulin_resistance", "obesity", "family_history_pcos",
                      "family_history_type2_diabetes", "metabolic_syndrome"),
        references=("doi:10.1093/humrep/deaa314", "ESHRE PCOS Guidelines 2018",
                    "doi:10.1016/j.fertnstert.2021.02.019"),
    ),
    PathologyRecord(
        id=ENDOMETRIOSIS,
        name="Endometriosis",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.10, 0.15),
        evidence_level=EvidenceLevel.A,
        definition=(
            "Functional endometrial tissue outside the uterine cavity, mainly "
            "pelvic; inflammatory ovarian environment with reduced oocyte quality."
        ),
        symptoms=("dysmenorrhea", "dyspareunia", "chronic_pelvic_pain",
                  "dyschezia", "heavy_menstrual_bleeding"),
        risk_factors=("early_menarche", "short_cycles", "nulliparity", "family_history"),
        references=("ESHRE Endometriosis Guideline 2022", "pmid:35350465"),
    ),
    PathologyRecord(
        id=MALE_FACTOR,
        name="Male Factor Infertility",
        category=PathologyCategory.MALE,
        prevalence_range=(0.40, 0.50),
        evidence_level=EvidenceLevel.A,
        definition="Abnormal semen parameters per WHO 2021 reference limits.",
        symptoms=("low_sperm_concentration", "low_motility", "abnormal_morphology"),
        risk_factors=("varicocele", "smoking", "heat_exposure", "anabolic_steroids"),
        references=("WHO Laboratory Manual 2021", "AUA/ASRM Male Infertility Guideline 2020"),
    ),
    PathologyRecord(
        id=DIMINISHED_OVARIAN_RESERVE,
        name="Diminished Ovarian Reserve",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.10, 0.15),
        evidence_level=EvidenceLevel.A,
        definition="Reduced oocyte quantity indicated by low AMH, low AFC or elevated basal FSH.",
        symptoms=("shortened_cycles",),
        risk_factors=("advanced_maternal_age", "ovarian_surgery", "chemotherapy", "smoking"),
        references=("POSEIDON criteria", "doi:10.1016/j.fertnstert.2020.09.134"),
    ),
    PathologyRecord(
        id=OVULATION_DISORDERS,
        name="Ovulation Disorders",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.25, 0.30),
        evidence_level=EvidenceLevel.A,
        definition="Anovulation or oligo-ovulation, WHO groups I–III.",
        symptoms=("irregular_periods", "amenorrhea", "oligomenorrhea"),
        risk_factors=("extreme_bmi", "excessive_exercise", "stress"),
        references=("WHO ovulation disorder classification",),
    ),
    PathologyRecord(
        id=TUBAL_FACTOR,
        name="Tubal Factor Infertility",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.25, 0.35),
        evidence_level=EvidenceLevel.A,
        definition="Tubal obstruction or dysfunction impairing gamete transport.",
        symptoms=("pelvic_pain",),
        risk_factors=("pelvic_inflammatory_disease", "chlamydia", "ectopic_pregnancy",
                      "pelvic_surgery"),
        references=("ASRM Committee Opinion: Tubal factor 2021",),
    ),
    PathologyRecord(
        id=HYPERPROLACTINEMIA,
        name="Hyperprolactinemia",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.05, 0.17),
        evidence_level=EvidenceLevel.A,
        definition="Elevated serum prolactin suppressing pulsatile GnRH secretion.",
        symptoms=("galactorrhea", "amenorrhea", "oligomenorrhea"),
        risk_factors=("pituitary_adenoma", "psychotropic_drugs", "hypothyroidism"),
        references=("Endocrine Society Hyperprolactinemia Guideline 2011",),
    ),
    PathologyRecord(
        id=HYPOTHYROIDISM,
        name="Hypothyroidism",
        category=PathologyCategory.FEMALE,
        prevalence_range=(0.02, 0.04),
        evidence_level=EvidenceLevel.A,
        definition="Clinical or subclinical thyroid hypofunction affecting ovulation and implantation.",
        symptoms=("fatigue", "weight_gain", "cold_intolerance"),
        risk_factors=("autoimmune_thyroiditis", "family_history"),
        references=("ATA Thyroid and Pregnancy Guideline 2017",),
    ),
    PathologyRecord(
        id=UNEXPLAINED,
        name="Unexplained Infertility",
        category=PathologyCategory.UNEXPLAINED,
        prevalence_range=(0.10, 0.25),
        evidence_level=EvidenceLevel.C,
        definition="Diagnosis of exclusion after a standard fertility work-up.",
        references=("NICE CG156",),
    ),
)
