#!/usr/bin/env python3
"""
Trigger the appointment reminder job.

Meant for a daily scheduler (cron, a CI schedule or a cloud scheduler).

Usage:
    python scripts/send_reminders.py
    python scripts/send_reminders.py --api-url https://api.example.com

Environment Variables:
    REMINDER_JOB_SECRET: Shared secret expected by the API
    API_URL: Base API URL (default: http://localhost:8000)
"""

import argparse
import os
import sys

import dotenv
import requests

dotenv.load_dotenv()


def trigger_reminders(api_url: str) -> dict:
    """Call the reminder endpoint and return its summary."""
    secret = os.getenv("REMINDER_JOB_SECRET")
    if not secret:
        print("Error: REMINDER_JOB_SECRET environment variable not set", file=sys.stderr)
        sys.exit(1)

    response = requests.post(
        f"{api_url.rstrip('/')}/api/v1/appointments/reminders",
        headers={"X-Reminder-Secret": secret},
        timeout=120,
    )
    response.raise_for_status()
    return response.json()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Send reminders for tomorrow's appointments")
    parser.add_argument(
        "--api-url",
        default=os.getenv("API_URL", "http://localhost:8000"),
        help="Base API URL",
    )
    args = parser.parse_args()

    try:
        summary = trigger_reminders(args.api_url)
    except requests.exceptions.RequestException as e:
        print(f"Error: reminder job failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(summary["message"])
    for result in summary["results"]:
        marker = "✓" if result["status"] == "sent" else "✗"
        print(f"  {marker} {result['appointment_id']} {result['patient_email']}")


if __name__ == "__main__":
    main()
