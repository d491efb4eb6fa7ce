from datetime import date
from typing import Any, List, Literal, Optional, get_args
from pydantic import BaseModel, ConfigDict, Field, computed_field

# --- Enumerations ---

Symptom = Literal[
    "none", "rash", "itching", "vomiting", "diarrhea", "hives", "swelling",
    "breathing_difficulty", "runny_nose", "watery_eyes", "abdominal_pain", "other"
]

SYMPTOMS = get_args(Symptom)

Author = Literal["dad", "mom"]

AUTHORS = get_args(Author)

AdvisoryLevel = Literal["info", "warning", "critical"]

# --- Record ---

class Record(BaseModel):
    id: str
    date: date
    time: str = "00:00"
    food: str = ""
    symptom: Symptom = "none"
    severity: Optional[int] = None  # only meaningful for reactions
    medication: str = ""
    memo: str = ""
    photos: List[str] = Field(default_factory=list)
    author: Author = "dad"

    @property
    def is_reaction(self) -> bool:
        return self.symptom != "none"

# --- Sync + backup envelopes ---

class SyncSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    data: Any = None
    timestamp: str
    device_id: str = Field(alias="deviceId")


class BackupDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    records: List[Record]
    backup_date: str = Field(alias="backupDate")
    app_version: str = Field(alias="appVersion")
    record_count: int = Field(alias="recordCount")

# --- Derived statistics ---

class FoodStat(BaseModel):
    food: str
    total_records: int = 0
    total_reactions: int = 0
    severity_sum: int = 0
    max_severity: int = 0
    symptoms: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def reaction_rate(self) -> float:
        if self.total_records == 0:
            return 0.0
        return self.total_reactions / self.total_records * 100

    @computed_field
    @property
    def avg_severity(self) -> float:
        if self.total_reactions == 0:
            return 0.0
        return self.severity_sum / self.total_reactions


class PeriodTotals(BaseModel):
    total_records: int = 0
    total_reactions: int = 0
    avg_severity: float = 0.0


class MonthSummary(BaseModel):
    current: PeriodTotals = Field(default_factory=PeriodTotals)
    previous: Optional[PeriodTotals] = None  # None when the previous month is empty
    reaction_delta: Optional[int] = None
    severity_delta: Optional[float] = None

    @property
    def total_reactions(self) -> int:
        return self.current.total_reactions

    @property
    def avg_severity(self) -> float:
        return self.current.avg_severity


class DayBucket(BaseModel):
    date: date
    reaction_count: int = 0
    avg_severity: float = 0.0


class Advisory(BaseModel):
    level: AdvisoryLevel
    kind: Literal["caution_foods", "safe_foods", "improving_trend", "consult_specialist"]
    title: str
    lines: List[str] = Field(default_factory=list)

# --- Medication reminders ---

class MedicationReminder(BaseModel):
    id: str
    name: str
    dosage: str
    time: str  # HH:MM, local wall clock
    is_active: bool = True
    last_taken: Optional[str] = None
    created_by: Author = "dad"
