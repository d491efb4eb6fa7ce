from datetime import datetime
from typing import List, Optional

from allergylog.domains.records import new_record_id
from allergylog.models import MedicationReminder

REMINDERS_KEY = "medication_reminders"


def load_reminders(store) -> List[MedicationReminder]:
    raw = store.get(REMINDERS_KEY) or []
    return [MedicationReminder.model_validate(r) for r in raw]


def save_reminders(store, reminders: List[MedicationReminder]) -> None:
    store.set(REMINDERS_KEY, [r.model_dump(mode="json") for r in reminders])


def add_reminder(store, name: str, dosage: str, time: str, created_by: str) -> MedicationReminder:
    if not (name and dosage and time):
        raise ValueError("name, dosage and time are all required")
    datetime.strptime(time, "%H:%M")  # raises ValueError on a bad clock time
    reminders = load_reminders(store)
    rem = MedicationReminder(id=new_record_id(), name=name, dosage=dosage, time=time, created_by=created_by)
    reminders.append(rem)
    save_reminders(store, reminders)
    return rem


def _change(store, reminder_id: str, **changes) -> MedicationReminder:
    reminders = load_reminders(store)
    updated = None
    for i, r in enumerate(reminders):
        if r.id == reminder_id:
            updated = reminders[i] = r.model_copy(update=changes)
            break
    if updated is None:
        raise KeyError(f"Reminder {reminder_id} not found")
    save_reminders(store, reminders)
    return updated


def toggle_reminder(store, reminder_id: str, active: bool) -> MedicationReminder:
    return _change(store, reminder_id, is_active=active)


def mark_taken(store, reminder_id: str, when: Optional[datetime] = None) -> MedicationReminder:
    return _change(store, reminder_id, last_taken=(when or datetime.now().astimezone()).isoformat())


def remove_reminder(store, reminder_id: str) -> None:
    reminders = load_reminders(store)
    remaining = [r for r in reminders if r.id != reminder_id]
    if len(remaining) == len(reminders):
        raise KeyError(f"Reminder {reminder_id} not found")
    save_reminders(store, remaining)


def due_reminders(reminders: List[MedicationReminder], now: datetime) -> List[MedicationReminder]:
    """Active reminders whose HH:MM matches now and that were not taken today."""
    clock = now.strftime("%H:%M")
    today = now.date()
    due = []
    for r in reminders:
        if not r.is_active or r.time != clock:
            continue
        if r.last_taken and datetime.fromisoformat(r.last_taken).date() == today:
            continue
        due.append(r)
    return due
