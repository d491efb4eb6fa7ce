#!/usr/bin/env python3
"""
allergylog CLI entry point
Log meals and reactions, read monthly statistics, and move the log between
devices via backup files or the shared sync folder.
"""
import sys
import json
import logging
import argparse
from datetime import datetime, date
from pathlib import Path
from dateutil import parser as dateparser

from allergylog.backup import restore_from_file, write_backup
from allergylog.config import settings
from allergylog.domains import reminders as reminder_domain
from allergylog.domains.records import RECORDS_KEY, RecordStore, filter_records, load_store, save_store
from allergylog.domains.sync import pull_records, pull_would_change, push_records
from allergylog.errors import AllergyLogError, InvalidFormat, StorageUnavailable
from allergylog.export_csv import write_csv
from allergylog.models import AUTHORS, SYMPTOMS, Record
from allergylog.recommendations import build_recommendations
from allergylog.stats import classify_food, compute_monthly_stats, parse_month, severity_band
from allergylog.storage.sync_storage import DEVICE_KEY, SYNC_KEY, get_local_storage, get_shared_storage

logger = logging.getLogger(__name__)

USER_KEY = "current_user"
LAST_PUSH_KEY = "last_push"

# ---------------- Helper functions -----------------

def parse_day(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        return dateparser.parse(value, default=datetime.now()).date()


def current_user(local):
    return local.read(USER_KEY) or settings.default_author


def confirm(prompt):
    return input(f"{prompt} (y/N) ").strip().lower().startswith('y')


def print_records(rows):
    if not rows:
        print("No records found.")
        return
    print(f"{'Date':<11} {'Time':<6} {'Food':<20} {'Symptom':<21} {'Sev':>3}  {'By':<4} ID")
    for r in rows:
        sev = "" if r.severity is None else str(r.severity)
        print(f"{r.date.isoformat():<11} {r.time:<6} {r.food[:20]:<20} {r.symptom:<21} {sev:>3}  {r.author:<4} {r.id}")


def print_sync_status(status):
    if status is None:
        print("Not synced yet.")
        return
    print(f"Last sync: {status.timestamp} from {status.device_id} (key={status.key})")


def print_monthly_report(stats):
    s = stats.summary
    print(f"Statistics for {stats.year}-{stats.month:02d}:")
    print(f"  Records: {s.current.total_records}")
    print(f"  Reactions: {s.total_reactions}", end="")
    print(f" ({s.reaction_delta:+} vs last month)" if s.reaction_delta is not None else "")
    print(f"  Avg severity: {s.avg_severity:.1f} [{severity_band(s.avg_severity)}]", end="")
    print(f" ({s.severity_delta:+.1f} vs last month)" if s.severity_delta is not None else "")

    print("\nRisk ranking:")
    if not stats.food_stats:
        print("  No records this month.")
    for rank, f in enumerate(stats.food_stats, 1):
        label = classify_food(f)
        tag = f"  <- {label.replace('_', ' ')}" if label else ""
        print(f"  {rank:>2}. {f.food}: {f.total_reactions}/{f.total_records} reactions, "
              f"{f.reaction_rate:.0f}%, avg {f.avg_severity:.1f} ({', '.join(f.symptoms) or '-'}){tag}")

    print("\nDaily trend:")
    for day in stats.daily_trend:
        if day.reaction_count:
            print(f"  {day.date.isoformat()}: {day.reaction_count} reaction(s), "
                  f"avg {day.avg_severity:.1f} [{severity_band(day.avg_severity)}]")

    advisories = build_recommendations(stats.food_stats, stats.summary)
    if advisories:
        print("\nRecommendations:")
    for a in advisories:
        print(f"  [{a.level}] {a.title}")
        for line in a.lines:
            print(f"    - {line}")

# ---------------- Commands -----------------

def open_store(local, replacing=False):
    """Load the local log. Commands that overwrite it wholesale start empty when it is unreadable."""
    try:
        return load_store(local)
    except (StorageUnavailable, InvalidFormat) as e:
        if not replacing:
            raise
        logger.warning("local log is unreadable, starting from an empty one: %s", e)
        return RecordStore()


def _record_from_args(args, base, author):
    fields = base.model_dump() if base else {"id": "", "date": date.today(), "time": datetime.now().strftime("%H:%M")}
    for name in ("food", "symptom", "severity", "medication", "memo", "time"):
        val = getattr(args, name, None)
        if val is not None:
            fields[name] = val
    if args.date:
        fields["date"] = parse_day(args.date)
    if args.photo is not None:
        fields["photos"] = args.photo
    if fields.get("symptom", "none") == "none":
        fields["severity"] = None
    fields["author"] = args.author or fields.get("author") or author
    return Record.model_validate(fields)


def cmd_add(args, local):
    store = open_store(local)
    rec = store.add(_record_from_args(args, None, current_user(local)))
    save_store(store, local)
    print(f"✔ logged {rec.food} ({rec.symptom}) (id={rec.id})")


def cmd_edit(args, local):
    store = open_store(local)
    rec = store.update(args.id, _record_from_args(args, store.get(args.id), current_user(local)))
    save_store(store, local)
    print(f"✔ updated record {rec.id}")


def cmd_delete(args, local):
    store = open_store(local)
    store.delete(args.id)
    save_store(store, local)
    print(f"✔ deleted record {args.id}")


def _filtered(args, store):
    on = date.today() if args.today else (parse_day(args.date) if args.date else None)
    return filter_records(store, on=on, search=args.search)


def cmd_list(args, local):
    print_records(_filtered(args, open_store(local)))


def cmd_stats(args, local):
    year, month = parse_month(args.month) if args.month else (date.today().year, date.today().month)
    print_monthly_report(compute_monthly_stats(open_store(local).all(), year, month))


def cmd_backup(args, local):
    store = open_store(local)
    path = write_backup(store.all(), args.out or settings.backup_dir)
    print(f"✔ backed up {len(store)} records to {path}")


def cmd_restore(args, local):
    store = open_store(local, replacing=True)
    if not args.yes and not confirm(f"Replace all {len(store)} local records with {args.file}?"):
        print("Aborted by user.")
        return
    count = restore_from_file(store, args.file)
    save_store(store, local)
    print(f"✔ restored {count} records")


def cmd_sync(args, local):
    shared = get_shared_storage()
    if args.action == "push":
        store = open_store(local)

        def remember_push(snapshot):
            local.store.set(LAST_PUSH_KEY, snapshot.timestamp)

        shared.add_listener(remember_push)
        try:
            snap = push_records(store, shared)
        finally:
            shared.remove_listener(remember_push)
        print(f"✔ pushed {len(store)} records at {snap.timestamp}")
    elif args.action == "pull":
        store = open_store(local, replacing=True)
        if not args.yes and not confirm("Replace all local records with the shared snapshot? Unpushed edits are lost."):
            print("Aborted by user.")
            return
        result = pull_records(store, shared)
        if result is None:
            print("✘ nothing has been pushed to the shared folder yet")
            return
        save_store(store, local)
        source = result.status.device_id if result.status else "an unknown device"
        print(f"✔ pulled {result.count} records from {source}")
    else:
        store = open_store(local)
        print(f"This device: {local.device_id}, {len(store)} records")
        print(f"Last push from this device: {local.read(LAST_PUSH_KEY) or 'never'}")
        print_sync_status(shared.get_sync_status())
        if pull_would_change(store, shared):
            print("A pull would change the local log.")
        else:
            print("Local log matches the shared snapshot (or nothing is shared).")


def cmd_export_csv(args, local):
    out = write_csv(_filtered(args, open_store(local)), args.out or settings.backup_dir)
    print(f"✔ exported to {out}")


def cmd_user(args, local):
    if args.name:
        local.store.set(USER_KEY, args.name)
    print(f"Current user: {current_user(local)}")


def cmd_remind(args, local):
    kv = local.store
    if args.action == "add":
        rem = reminder_domain.add_reminder(kv, args.name, args.dosage, args.time, current_user(local))
        print(f"✔ reminder {rem.name} {rem.dosage} at {rem.time} (id={rem.id})")
    elif args.action == "remove":
        reminder_domain.remove_reminder(kv, args.id)
        print(f"✔ removed reminder {args.id}")
    elif args.action in ("on", "off"):
        rem = reminder_domain.toggle_reminder(kv, args.id, args.action == "on")
        print(f"✔ reminder {rem.name} turned {args.action}")
    elif args.action == "taken":
        rem = reminder_domain.mark_taken(kv, args.id)
        print(f"✔ {rem.name} marked taken at {rem.last_taken}")
    elif args.action == "due":
        due = reminder_domain.due_reminders(reminder_domain.load_reminders(kv), datetime.now().astimezone())
        for rem in due:
            print(f"Time for {rem.name} {rem.dosage} (id={rem.id})")
        if not due:
            print("Nothing due right now.")
    else:
        rems = reminder_domain.load_reminders(kv)
        if not rems:
            print("No reminders.")
        for rem in rems:
            state = "on" if rem.is_active else "off"
            print(f"{rem.time}  {rem.name} {rem.dosage} [{state}] by {rem.created_by} (id={rem.id})")


def cmd_dump(args, local):
    # raw values only, so a damaged log can still be inspected
    raw = local.read(RECORDS_KEY)
    print(f"Found {len(raw) if isinstance(raw, list) else 0} records, device {local.read(DEVICE_KEY) or 'unregistered'}")
    print(f"Sync envelope: {json.dumps(local.read(SYNC_KEY), ensure_ascii=False)[:200]}")
    for r in raw if isinstance(raw, list) else []:
        print(json.dumps(r, indent=2, ensure_ascii=False))

# ---------------- Main -----------------

def _add_record_options(p, food_required):
    p.add_argument("--food", required=food_required)
    p.add_argument("--date", help="YYYY-MM-DD (default today)")
    p.add_argument("--time", help="HH:MM (default now)")
    p.add_argument("--symptom", choices=SYMPTOMS)
    p.add_argument("--severity", type=int, help="1-10, required with a symptom")
    p.add_argument("--medication")
    p.add_argument("--memo")
    p.add_argument("--photo", action="append", help="image reference, at most two")
    p.add_argument("--author", choices=AUTHORS)


def _add_filter_options(p):
    p.add_argument("--today", action="store_true")
    p.add_argument("--date")
    p.add_argument("--search")


def build_parser():
    parser = argparse.ArgumentParser(prog="allergylog", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="log a meal or reaction")
    _add_record_options(p, True)
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("edit", help="replace a record")
    p.add_argument("id")
    _add_record_options(p, False)
    p.set_defaults(func=cmd_edit)

    p = sub.add_parser("delete", help="delete a record")
    p.add_argument("id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("list", help="show records")
    _add_filter_options(p)
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("stats", help="monthly statistics and recommendations")
    p.add_argument("--month", help="e.g. 2024-03 (default this month)")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("backup", help="write a JSON backup file")
    p.add_argument("--out", type=Path)
    p.set_defaults(func=cmd_backup)

    p = sub.add_parser("restore", help="replace the log from a backup file")
    p.add_argument("file", type=Path)
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("sync", help="exchange the log through the shared folder")
    p.add_argument("action", choices=("push", "pull", "status"))
    p.add_argument("--yes", action="store_true")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("export-csv", help="write records as CSV")
    _add_filter_options(p)
    p.add_argument("--out", type=Path)
    p.set_defaults(func=cmd_export_csv)

    p = sub.add_parser("user", help="show or set the current caregiver")
    p.add_argument("name", nargs="?", choices=AUTHORS)
    p.set_defaults(func=cmd_user)

    p = sub.add_parser("remind", help="medication reminders")
    rsub = p.add_subparsers(dest="action", required=True)
    r = rsub.add_parser("add")
    r.add_argument("name")
    r.add_argument("dosage")
    r.add_argument("time", help="HH:MM")
    for name in ("remove", "taken", "on", "off"):
        r = rsub.add_parser(name)
        r.add_argument("id")
    rsub.add_parser("list")
    rsub.add_parser("due")
    p.set_defaults(func=cmd_remind)

    p = sub.add_parser("dump", help="print the raw stored state")
    p.set_defaults(func=cmd_dump)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        args.func(args, get_local_storage())
    except (AllergyLogError, KeyError, ValueError) as e:
        logger.debug("command %s failed", args.command, exc_info=True)
        # KeyError str() adds quotes around the message
        print(f"✘ {e.args[0] if isinstance(e, KeyError) and e.args else e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
