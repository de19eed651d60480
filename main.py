#!/usr/bin/env python3
"""
Book Yr Life - Interactive Menu Launcher
Run this file to reach the booking commands through a simple menu.

Usage:
    python main.py
"""

import subprocess
import sys
import os

PYTHON = sys.executable
BOOKYR = [PYTHON, "bookyr/cli/main.py"]

# Project root on PYTHONPATH so the 'bookyr' package is importable
ENV = os.environ.copy()
ENV["PYTHONPATH"] = os.path.dirname(os.path.abspath(__file__))


def run(args: list[str]):
    """Run a bookyr CLI command and return to menu when done."""
    print()
    subprocess.run(BOOKYR + args, env=ENV)
    print()
    input("  Press Enter to return to menu...")


def prompt(label: str, required: bool = True) -> str:
    """Prompt user for input. Returns empty string if optional and skipped."""
    while True:
        value = input(f"  {label}: ").strip()
        if value:
            return value
        if not required:
            return ""
        print("  (required - please enter a value)")


def prompt_optional(label: str) -> str:
    return prompt(f"{label} (optional, Enter to skip)", required=False)


def prompt_side() -> list[str]:
    """--artist ID or --venue ID"""
    while True:
        side = input("  Artist or venue view? (a/v): ").strip().lower()
        if side in ("a", "v"):
            break
    context_id = prompt("Artist ID" if side == "a" else "Venue ID")
    return ["--artist" if side == "a" else "--venue", context_id]


def user_args() -> list[str]:
    """Use BOOKYR_USER if set, otherwise ask."""
    if os.environ.get("BOOKYR_USER"):
        return []
    return ["--user", prompt("Your user ID")]


def clear():
    os.system("cls" if os.name == "nt" else "clear")


# =============================================================================
# COMMAND HANDLERS
# =============================================================================

def opportunities_list():
    args = ["opportunities", "list"] + prompt_side()
    s = prompt_optional("Filter by status (OPEN/PENDING/CONFIRMED/DECLINED/CANCELLED)")
    f = prompt_optional("From date (YYYY-MM-DD)")
    t = prompt_optional("To date (YYYY-MM-DD)")
    if s: args += ["--status", s.upper()]
    if f: args += ["--from", f]
    if t: args += ["--to", t]
    run(args)

def opportunities_show():
    oid = prompt("Opportunity ID")
    run(["opportunities", "show", oid] + user_args())

def opportunities_add():
    run(["opportunities", "add"] + user_args())

def opportunities_accept():
    oid = prompt("Opportunity ID")
    run(["opportunities", "accept", oid] + user_args())

def opportunities_decline():
    oid = prompt("Opportunity ID")
    run(["opportunities", "decline", oid] + user_args())

def opportunities_cancel():
    oid = prompt("Opportunity ID")
    run(["opportunities", "cancel", oid] + user_args())

def timeline():
    args = ["timeline"] + prompt_side()
    m = prompt_optional("Month (YYYY-MM)")
    if m: args += ["--month", m]
    remote = input("  Read from the REST API? (y/N): ").strip().lower()
    if remote == "y": args += ["--remote"]
    run(args)

def stats():
    run(["stats"] + prompt_side())

def holds_request():
    doc = prompt("Show request ID")
    args = ["holds", "request", doc] + user_args()
    d = prompt_optional("Duration: 24, 48, 72 or 1w (default: 24)")
    if d: args += ["--duration", d]
    run(args)

def holds_list():
    run(["holds", "list"] + user_args())

def holds_approve():
    hid = prompt("Hold ID")
    run(["holds", "approve", hid] + user_args())

def holds_decline():
    hid = prompt("Hold ID")
    run(["holds", "decline", hid] + user_args())

def holds_end():
    hid = prompt("Hold ID")
    run(["holds", "end", hid] + user_args())

def holds_watch():
    hid = prompt("Hold ID")
    run(["holds", "watch", hid])

def holds_sweep():
    run(["holds", "sweep"])

def favorites_list():
    run(["favorites", "list"] + user_args())

def favorites_toggle():
    kind = prompt("VENUE or ARTIST").upper()
    eid = prompt("ID")
    run(["favorites", "toggle", kind, eid] + user_args())

def embeds_add():
    kind = prompt("VENUE or ARTIST").upper()
    eid = prompt("ID")
    url = prompt("Media URL (YouTube/Spotify/SoundCloud/Bandcamp)")
    args = ["embeds", "add", kind, eid, url] + user_args()
    feat = input("  Featured? (y/N): ").strip().lower()
    if feat == "y": args += ["--featured"]
    run(args)

def messages_list():
    run(["messages", "list"])

def messages_show():
    cid = prompt("Conversation ID")
    run(["messages", "show", cid])

def messages_send():
    cid = prompt("Conversation ID")
    name = prompt("Your display name")
    text = prompt("Message")
    run(["messages", "send", cid, text, "--name", name] + user_args())

def draft():
    oid = prompt("Opportunity ID")
    args = ["draft", oid]
    sender = input("  From artist or venue? (a/v, default: a): ").strip().lower()
    if sender == "v": args += ["--sender", "VENUE"]
    model = input("  AI model - claude or deepseek-chat (default: claude): ").strip().lower()
    if model in ("claude", "deepseek-chat", "deepseek-reasoner"): args += ["--model", model]
    run(args)


# =============================================================================
# MENU LAYOUT
# =============================================================================

MENU = [
    ("BOOKINGS", [
        ("List booking opportunities",   opportunities_list),
        ("Show opportunity details",     opportunities_show),
        ("Propose a show",               opportunities_add),
        ("Accept opportunity",           opportunities_accept),
        ("Decline opportunity",          opportunities_decline),
        ("Cancel opportunity",           opportunities_cancel),
    ]),
    ("TIMELINE", [
        ("Month-by-month timeline",      timeline),
        ("Booking stats",                stats),
    ]),
    ("HOLDS", [
        ("Request a hold",               holds_request),
        ("My holds",                     holds_list),
        ("Approve hold",                 holds_approve),
        ("Decline hold",                 holds_decline),
        ("End hold early",               holds_end),
        ("Watch hold countdown",         holds_watch),
        ("Expire overdue holds",         holds_sweep),
    ]),
    ("PROFILES", [
        ("My favorites",                 favorites_list),
        ("Favorite / unfavorite",        favorites_toggle),
        ("Add media embed",              embeds_add),
    ]),
    ("MESSAGES", [
        ("Conversations",                messages_list),
        ("Read conversation",            messages_show),
        ("Send message",                 messages_send),
    ]),
    ("AI FEATURES", [
        ("Draft booking message",        draft),
    ]),
]


def print_menu():
    clear()
    print("=" * 50)
    print("   BOOK YR LIFE - BOOKING DESK")
    print("=" * 50)

    n = 1
    numbering = {}  # maps display number -> handler function

    for section, commands in MENU:
        print(f"\n  {section}")
        print(f"  {'-' * len(section)}")
        for label, handler in commands:
            print(f"  {n:>2}.  {label}")
            numbering[n] = handler
            n += 1

    print("\n" + "=" * 50)
    print("   0.  Exit")
    print("=" * 50)
    return numbering


def main():
    while True:
        numbering = print_menu()

        try:
            choice = input("\n  Select a command: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\n  Goodbye!\n")
            break

        if choice == "0" or choice.lower() in ("q", "quit", "exit"):
            print("\n  Goodbye!\n")
            break

        try:
            n = int(choice)
            if n in numbering:
                clear()
                numbering[n]()
            else:
                print(f"\n  Invalid selection: {choice}")
                input("  Press Enter to continue...")
        except ValueError:
            print(f"\n  Please enter a number.")
            input("  Press Enter to continue...")


if __name__ == "__main__":
    main()
